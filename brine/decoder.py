"""
Turn a byte buffer into a sequence of Instructions, one tag at a time.

Decoding is a pure function of the buffer and a cursor position.
Nothing gets evaluated here: decimal text stays text, and byte payloads
stay as read-only views into the caller's buffer so nothing is copied.
An unknown tag is fatal; there is no attempt to skip or resynchronize.
"""
import struct
from typing import Iterator
from .opcodes import Argument, Instruction, Opcode, BY_CODE, STOP
from .diagnostics import DecodeError

_FIXED = {
	Argument.UINT1: struct.Struct("<B"),
	Argument.UINT2: struct.Struct("<H"),
	Argument.INT4: struct.Struct("<i"),
	Argument.UINT4: struct.Struct("<I"),
	Argument.UINT8: struct.Struct("<Q"),
	Argument.FLOAT8: struct.Struct("<d"),
}

_LENGTH_PREFIX = {
	Argument.BYTES1: _FIXED[Argument.UINT1],
	Argument.BYTES4: _FIXED[Argument.UINT4],
	Argument.BYTES8: _FIXED[Argument.UINT8],
	Argument.UTF8_1: _FIXED[Argument.UINT1],
	Argument.UTF8_4: _FIXED[Argument.UINT4],
	Argument.UTF8_8: _FIXED[Argument.UINT8],
}

_UTF8 = {Argument.UTF8_1, Argument.UTF8_4, Argument.UTF8_8}

_NEWLINE = 0x0A

def _view(data) -> memoryview:
	view = data if isinstance(data, memoryview) else memoryview(data)
	return view.cast("B").toreadonly()

class _Cursor:
	""" Reads fields from a view, complaining in terms of byte offsets. """
	def __init__(self, view:memoryview, position:int, opcode:Opcode):
		self.view, self.position, self.opcode = view, position, opcode

	def _fail(self, reason, position=None):
		raise DecodeError(self.position if position is None else position, reason, self.opcode.name)

	def fixed(self, layout:struct.Struct):
		end = self.position + layout.size
		if end > len(self.view):
			self._fail("Truncated %d-byte argument"%layout.size)
		value, = layout.unpack_from(self.view, self.position)
		self.position = end
		return value

	def counted(self, layout:struct.Struct) -> memoryview:
		size = self.fixed(layout)
		end = self.position + size
		if end > len(self.view):
			self._fail("Truncated payload (%d bytes declared, %d available)"%(size, len(self.view) - self.position))
		payload = self.view[self.position:end]
		self.position = end
		return payload

	def line(self) -> memoryview:
		start = self.position
		for end in range(start, len(self.view)):
			if self.view[end] == _NEWLINE:
				self.position = end + 1
				return self.view[start:end]
		self._fail("Unterminated line of text")

	def text(self, payload:memoryview, position:int, codec:str="utf-8") -> str:
		try: return str(payload, codec)
		except UnicodeDecodeError as e:
			self._fail("Text is not valid %s"%codec, position + e.start)

def decode_one(data, position:int=0) -> tuple[Instruction, int]:
	"""
	Decode exactly one instruction starting at ``position``.
	Returns the instruction and the position just past it.
	"""
	view = _view(data)
	if position >= len(view):
		raise DecodeError(position, "Expected an opcode but the input is exhausted")
	try: opcode = BY_CODE[view[position]]
	except KeyError: raise DecodeError(position, "Unknown opcode 0x%02x"%view[position]) from None
	cursor = _Cursor(view, position+1, opcode)
	rule = opcode.argument
	if rule is Argument.NOTHING:
		arg = None
	elif rule in _FIXED:
		arg = cursor.fixed(_FIXED[rule])
	elif rule in _LENGTH_PREFIX:
		start = cursor.position
		arg = cursor.counted(_LENGTH_PREFIX[rule])
		if rule in _UTF8: arg = cursor.text(arg, start + _LENGTH_PREFIX[rule].size)
	elif rule is Argument.TWO_LINES:
		first = cursor.position
		module = cursor.text(cursor.line(), first)
		second = cursor.position
		arg = module, cursor.text(cursor.line(), second)
	else:
		start = cursor.position
		codec = "raw-unicode-escape" if rule is Argument.ESCAPED else "utf-8"
		arg = cursor.text(cursor.line(), start, codec)
	return Instruction(opcode, arg), cursor.position

def iter_instructions(data, *, through_stop=False) -> Iterator[tuple[int, Instruction]]:
	""" Lazily yield (position, instruction) pairs until the input runs out. """
	view = _view(data)
	position = 0
	while position < len(view):
		instruction, after = decode_one(view, position)
		yield position, instruction
		if through_stop and instruction.opcode is STOP: return
		position = after

def decode_all(data, *, through_stop=False) -> list[Instruction]:
	"""
	Decode the whole buffer. The first undecodable byte fails the lot.
	With through_stop, anything after the first STOP is none of our business.
	"""
	return [instruction for _, instruction in iter_instructions(data, through_stop=through_stop)]
