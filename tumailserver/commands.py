# tumailserver
# MIT licensed

from enum import Enum
from typing import Dict, Tuple


class Reply(str, Enum):
    SERVICE_READY = '220'
    SERVICE_CLOSING = '221 Bye'
    OKAY = '250 OK'
    START_MAIL_INPUT = '354 Start mail input; end with <CRLF>.<CRLF>'
    COMMAND_NOT_IMPLEMENTED = '502 Command not implemented'


class Command(Enum):
    EHLO = 'EHLO'
    MAIL = 'MAIL'
    RCPT = 'RCPT'
    DATA = 'DATA'
    RSET = 'RSET'
    VRFY = 'VRFY'
    EXPN = 'EXPN'
    HELP = 'HELP'
    NOOP = 'NOOP'
    QUIT = 'QUIT'
    UNKNOWN = 'UNKNOWN'


# HELO is answered exactly like EHLO: no extensions are ever advertised
COMMAND_TABLE: Dict[str, Command] = {
    'EHLO': Command.EHLO,
    'HELO': Command.EHLO,
    'MAIL': Command.MAIL,
    'RCPT': Command.RCPT,
    'DATA': Command.DATA,
    'RSET': Command.RSET,
    'VRFY': Command.VRFY,
    'EXPN': Command.EXPN,
    'HELP': Command.HELP,
    'NOOP': Command.NOOP,
    'QUIT': Command.QUIT,
}

REPLY_TABLE: Dict[Command, Reply] = {
    Command.EHLO: Reply.OKAY,
    Command.MAIL: Reply.OKAY,
    Command.RCPT: Reply.OKAY,
    Command.DATA: Reply.START_MAIL_INPUT,
    Command.RSET: Reply.OKAY,
    Command.VRFY: Reply.OKAY,
    Command.EXPN: Reply.COMMAND_NOT_IMPLEMENTED,
    Command.HELP: Reply.COMMAND_NOT_IMPLEMENTED,
    Command.NOOP: Reply.OKAY,
    Command.QUIT: Reply.SERVICE_CLOSING,
}


def parse_command(line: str) -> Tuple[Command, str]:
    """Map a raw command line to its verb and the reply to send back.

    Unknown verbs are accepted with the generic okay reply; a known verb
    without a reply table entry gets "not implemented".
    """
    tokens = line.strip().split(None, 1)
    if not tokens:
        return Command.UNKNOWN, Reply.OKAY.value

    command = COMMAND_TABLE.get(tokens[0].upper())
    if command is None:
        return Command.UNKNOWN, Reply.OKAY.value

    reply = REPLY_TABLE.get(command, Reply.COMMAND_NOT_IMPLEMENTED)
    return command, reply.value
