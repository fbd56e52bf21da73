# tumailserver
# MIT licensed

__version__ = '0.1.0'
