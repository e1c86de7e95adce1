"""
The pickle protocol is a closed, versioned instruction set: one tag byte
followed by an argument whose encoding depends entirely on the tag.
This module is the table of all of them, protocols 0 through 5,
byte-for-byte as the reference unpickler reads them.

Nothing here knows how to read bytes or evaluate anything.
The decoder consults ``Opcode.argument`` and the evaluator dispatches on ``Opcode.name``.
"""
from enum import Enum
from typing import NamedTuple, Any

HIGHEST_PROTOCOL = 5

class Argument(Enum):
	""" How the bytes after a tag are to be read. """
	NOTHING = "none"
	UINT1 = "1-byte unsigned"
	UINT2 = "2-byte unsigned"
	INT4 = "4-byte signed"
	UINT4 = "4-byte unsigned"
	UINT8 = "8-byte unsigned"
	FLOAT8 = "8-byte float"
	DECIMAL = "decimal text, newline-terminated"
	TEXT = "text, newline-terminated"
	ESCAPED = "raw-unicode-escaped text, newline-terminated"
	TWO_LINES = "two newline-terminated names"
	BYTES1 = "bytes, 1-byte length"
	BYTES4 = "bytes, 4-byte length"
	BYTES8 = "bytes, 8-byte length"
	UTF8_1 = "UTF-8, 1-byte length"
	UTF8_4 = "UTF-8, 4-byte length"
	UTF8_8 = "UTF-8, 8-byte length"

class Opcode(NamedTuple):
	name: str
	code: int
	argument: Argument
	proto: int
	doc: str
	def __repr__(self): return self.name

class Instruction(NamedTuple):
	"""
	One decoded opcode and its argument, if any.
	Payload arguments are read-only views into the original buffer.
	"""
	opcode: Opcode
	arg: Any = None

	def __repr__(self):
		if self.opcode.argument is Argument.NOTHING: return self.opcode.name
		if isinstance(self.arg, memoryview): return "%s(%r)"%(self.opcode.name, bytes(self.arg))
		if self.opcode.argument is Argument.TWO_LINES: return "%s(%r, %r)"%(self.opcode.name, *self.arg)
		return "%s(%r)"%(self.opcode.name, self.arg)

BY_CODE : dict[int, Opcode] = {}

def _define(tag:bytes, name:str, argument:Argument, proto:int, doc:str) -> Opcode:
	assert len(tag) == 1, tag
	opcode = Opcode(name, tag[0], argument, proto, doc)
	assert opcode.code not in BY_CODE, name
	BY_CODE[opcode.code] = opcode
	return opcode

_ = Argument

# Protocol 0 and 1
MARK            = _define(b'(', "MARK", _.NOTHING, 0, "push special markobject on stack")
STOP            = _define(b'.', "STOP", _.NOTHING, 0, "every pickle ends with STOP")
POP             = _define(b'0', "POP", _.NOTHING, 0, "discard topmost stack item")
POP_MARK        = _define(b'1', "POP_MARK", _.NOTHING, 1, "discard stack top through topmost markobject")
DUP             = _define(b'2', "DUP", _.NOTHING, 0, "duplicate top stack item")
FLOAT           = _define(b'F', "FLOAT", _.DECIMAL, 0, "push float object; decimal string argument")
INT             = _define(b'I', "INT", _.DECIMAL, 0, "push integer or bool; decimal string argument")
BININT          = _define(b'J', "BININT", _.INT4, 1, "push four-byte signed int")
BININT1         = _define(b'K', "BININT1", _.UINT1, 1, "push 1-byte unsigned int")
LONG            = _define(b'L', "LONG", _.DECIMAL, 0, "push long; decimal string argument")
BININT2         = _define(b'M', "BININT2", _.UINT2, 1, "push 2-byte unsigned int")
NONE            = _define(b'N', "NONE", _.NOTHING, 0, "push None")
PERSID          = _define(b'P', "PERSID", _.TEXT, 0, "push persistent object; id is taken from string arg")
BINPERSID       = _define(b'Q', "BINPERSID", _.NOTHING, 1, "push persistent object; id is taken from stack")
REDUCE          = _define(b'R', "REDUCE", _.NOTHING, 0, "apply callable to argtuple, both on stack")
STRING          = _define(b'S', "STRING", _.TEXT, 0, "push string; NL-terminated string argument")
BINSTRING       = _define(b'T', "BINSTRING", _.BYTES4, 1, "push string; counted binary string argument")
SHORT_BINSTRING = _define(b'U', "SHORT_BINSTRING", _.BYTES1, 1, "push string; counted binary string < 256 bytes")
UNICODE         = _define(b'V', "UNICODE", _.ESCAPED, 0, "push Unicode string; raw-unicode-escaped argument")
BINUNICODE      = _define(b'X', "BINUNICODE", _.UTF8_4, 1, "push Unicode string; counted UTF-8 string argument")
APPEND          = _define(b'a', "APPEND", _.NOTHING, 0, "append stack top to list below it")
BUILD           = _define(b'b', "BUILD", _.NOTHING, 0, "call __setstate__ or __dict__.update()")
GLOBAL          = _define(b'c', "GLOBAL", _.TWO_LINES, 0, "push self.find_class(modname, name); 2 string args")
DICT            = _define(b'd', "DICT", _.NOTHING, 0, "build a dict from stack items")
EMPTY_DICT      = _define(b'}', "EMPTY_DICT", _.NOTHING, 1, "push empty dict")
APPENDS         = _define(b'e', "APPENDS", _.NOTHING, 1, "extend list on stack by topmost stack slice")
GET             = _define(b'g', "GET", _.DECIMAL, 0, "push item from memo on stack; index is string arg")
BINGET          = _define(b'h', "BINGET", _.UINT1, 1, "push item from memo on stack; index is 1-byte arg")
INST            = _define(b'i', "INST", _.TWO_LINES, 0, "build & push class instance")
LONG_BINGET     = _define(b'j', "LONG_BINGET", _.UINT4, 1, "push item from memo on stack; index is 4-byte arg")
LIST            = _define(b'l', "LIST", _.NOTHING, 0, "build list from topmost stack items")
EMPTY_LIST      = _define(b']', "EMPTY_LIST", _.NOTHING, 1, "push empty list")
OBJ             = _define(b'o', "OBJ", _.NOTHING, 1, "build & push class instance")
PUT             = _define(b'p', "PUT", _.DECIMAL, 0, "store stack top in memo; index is string arg")
BINPUT          = _define(b'q', "BINPUT", _.UINT1, 1, "store stack top in memo; index is 1-byte arg")
LONG_BINPUT     = _define(b'r', "LONG_BINPUT", _.UINT4, 1, "store stack top in memo; index is 4-byte arg")
SETITEM         = _define(b's', "SETITEM", _.NOTHING, 0, "add key+value pair to dict")
TUPLE           = _define(b't', "TUPLE", _.NOTHING, 0, "build tuple from topmost stack items")
EMPTY_TUPLE     = _define(b')', "EMPTY_TUPLE", _.NOTHING, 1, "push empty tuple")
SETITEMS        = _define(b'u', "SETITEMS", _.NOTHING, 1, "modify dict by adding topmost key+value pairs")
BINFLOAT        = _define(b'G', "BINFLOAT", _.FLOAT8, 1, "push float; arg is 8-byte float encoding")

# Protocol 2
PROTO           = _define(b'\x80', "PROTO", _.UINT1, 2, "identify pickle protocol")
NEWOBJ          = _define(b'\x81', "NEWOBJ", _.NOTHING, 2, "build object by applying cls.__new__ to argtuple")
EXT1            = _define(b'\x82', "EXT1", _.UINT1, 2, "push object from extension registry; 1-byte index")
EXT2            = _define(b'\x83', "EXT2", _.UINT2, 2, "ditto, but 2-byte index")
EXT4            = _define(b'\x84', "EXT4", _.INT4, 2, "ditto, but 4-byte index")
TUPLE1          = _define(b'\x85', "TUPLE1", _.NOTHING, 2, "build 1-tuple from stack top")
TUPLE2          = _define(b'\x86', "TUPLE2", _.NOTHING, 2, "build 2-tuple from two topmost stack items")
TUPLE3          = _define(b'\x87', "TUPLE3", _.NOTHING, 2, "build 3-tuple from three topmost stack items")
NEWTRUE         = _define(b'\x88', "NEWTRUE", _.NOTHING, 2, "push True")
NEWFALSE        = _define(b'\x89', "NEWFALSE", _.NOTHING, 2, "push False")
LONG1           = _define(b'\x8a', "LONG1", _.BYTES1, 2, "push long from < 256 bytes")
LONG4           = _define(b'\x8b', "LONG4", _.BYTES4, 2, "push really big long")

# Protocol 3
BINBYTES        = _define(b'B', "BINBYTES", _.BYTES4, 3, "push bytes; counted binary string argument")
SHORT_BINBYTES  = _define(b'C', "SHORT_BINBYTES", _.BYTES1, 3, "push bytes; counted binary string < 256 bytes")

# Protocol 4
SHORT_BINUNICODE = _define(b'\x8c', "SHORT_BINUNICODE", _.UTF8_1, 4, "push short string; UTF-8 length < 256 bytes")
BINUNICODE8     = _define(b'\x8d', "BINUNICODE8", _.UTF8_8, 4, "push very long string")
BINBYTES8       = _define(b'\x8e', "BINBYTES8", _.BYTES8, 4, "push very long bytes string")
EMPTY_SET       = _define(b'\x8f', "EMPTY_SET", _.NOTHING, 4, "push empty set on the stack")
ADDITEMS        = _define(b'\x90', "ADDITEMS", _.NOTHING, 4, "modify set by adding topmost stack items")
FROZENSET       = _define(b'\x91', "FROZENSET", _.NOTHING, 4, "build frozenset from topmost stack items")
NEWOBJ_EX       = _define(b'\x92', "NEWOBJ_EX", _.NOTHING, 4, "like NEWOBJ but work with keyword only arguments")
STACK_GLOBAL    = _define(b'\x93', "STACK_GLOBAL", _.NOTHING, 4, "same as GLOBAL but using names on the stacks")
MEMOIZE         = _define(b'\x94', "MEMOIZE", _.NOTHING, 4, "store top of the stack in memo")
FRAME           = _define(b'\x95', "FRAME", _.UINT8, 4, "indicate the beginning of a new frame")

# Protocol 5
BYTEARRAY8      = _define(b'\x96', "BYTEARRAY8", _.BYTES8, 5, "push bytearray")
NEXT_BUFFER     = _define(b'\x97', "NEXT_BUFFER", _.NOTHING, 5, "push next out-of-band buffer")
READONLY_BUFFER = _define(b'\x98', "READONLY_BUFFER", _.NOTHING, 5, "make top of stack readonly")

del _

BY_NAME : dict[str, Opcode] = {op.name: op for op in BY_CODE.values()}
