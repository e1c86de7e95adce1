"""
The tagged-union result of evaluation: a tree of generic values.

Composite nodes (App, Object, Build, PersId, Global, Seq) own their children.
A Ref names a memo entry instead; the MemoTable follows it.
A Raw carries an instruction nobody has interpreted yet. The normalize
function below turns the ones it understands into canonical leaves.

Equality is structural, so tests (and curious callers) can compare trees directly.
"""
import struct
from enum import Enum
from typing import Optional
from . import opcodes as op
from .opcodes import Instruction

INT64_MIN, INT64_MAX = -(1 << 63), (1 << 63) - 1
REPR_DEPTH = 100

class SeqKind(Enum):
	List = "List"
	Dict = "Dict"
	Tuple = "Tuple"
	Set = "Set"
	FrozenSet = "FrozenSet"
	def __repr__(self): return self.value

class Value:
	""" Root of the value tree. Subclasses supply _key for equality and repr. """
	def _key(self) -> tuple: raise NotImplementedError(type(self))
	def __eq__(self, other): return type(self) is type(other) and self._key() == other._key()
	def __hash__(self): return hash((type(self).__name__, self._key()))
	def __repr__(self): return flat_repr(self)

class Composite(Value):
	""" Nodes with children are mutable during evaluation, so they are not hashable. """
	__hash__ = None

def flat_repr(thing, budget:int=REPR_DEPTH, cache:Optional[dict]=None) -> str:
	"""
	The one-line form of a value, with anything nested more than budget levels
	down shown as an ellipsis. Deeply nested pickles are perfectly legal.
	A cache (keyed by node identity and budget) lets a caller ask about
	every subtree of a big tree without redoing the work each time.
	"""
	if isinstance(thing, list):
		return "[%s]"%', '.join([flat_repr(x, budget, cache) for x in thing])
	if not isinstance(thing, Value) or type(thing).__repr__ is not Value.__repr__:
		return repr(thing)
	if budget <= 0: return "..."
	if cache is not None:
		key = id(thing), budget
		if key in cache: return cache[key]
	text = "%s(%s)"%(type(thing).__name__, ', '.join([flat_repr(k, budget-1, cache) for k in thing._key()]))
	if cache is not None: cache[key] = text
	return text

#######################################################################

class Raw(Value):
	""" An instruction the evaluator left alone. Maybe normalize can make something of it. """
	def __init__(self, instruction:Instruction):
		assert isinstance(instruction, Instruction), instruction
		self.instruction = instruction
	def _key(self): return self.instruction,
	def is_mark(self): return self.instruction.opcode is op.MARK

class Ref(Value):
	""" A pointer into the memo table, by id. """
	def __init__(self, memo_id:int):
		self.memo_id = memo_id
	def _key(self): return self.memo_id,

class App(Composite):
	""" Something applied to arguments. Nothing produces these yet. """
	def __init__(self, callee:Value, args:list[Value]):
		self.callee, self.args = callee, args
	def _key(self): return self.callee, self.args

class Object(Composite):
	""" An instance: cls identifies the type, args went to the constructor. """
	def __init__(self, cls:Value, args:list[Value]):
		self.cls, self.args = cls, args
	def _key(self): return self.cls, self.args

class Build(Composite):
	""" State applied to a target after construction. """
	def __init__(self, target:Value, state:Value):
		self.target, self.state = target, state
	def _key(self): return self.target, self.state

class PersId(Composite):
	""" Opaque reference to something stored outside the pickle. Only the application knows. """
	def __init__(self, pid:Value):
		self.pid = pid
	def _key(self): return self.pid,

class Global(Composite):
	"""
	A named callable and whatever got applied or added to it.
	Collection-like callables (an OrderedDict, say) accumulate their
	contents here through the APPEND and SETITEM families.
	"""
	def __init__(self, callee:Value, args:Optional[list[Value]]=None):
		self.callee = callee
		self.args = [] if args is None else args
	def _key(self): return self.callee, self.args

class Seq(Composite):
	""" A container. For a Dict, the items are always 2-tuples (key, value). """
	def __init__(self, kind:SeqKind, items:Optional[list[Value]]=None):
		assert isinstance(kind, SeqKind), kind
		self.kind = kind
		self.items = [] if items is None else items
	def _key(self): return self.kind, self.items
	@property
	def args(self): return self.items

#######################################################################
# Leaves

class String(Value):
	def __init__(self, text:str):
		self.text = text
	def _key(self): return self.text,

class Bytes(Value):
	""" Might be a view into the original buffer. """
	def __init__(self, data):
		self.data = data
	def _key(self): return bytes(self.data),

class Int(Value):
	""" Anything that fits in 64 signed bits. """
	def __init__(self, value:int):
		assert INT64_MIN <= value <= INT64_MAX, value
		self.value = value
	def _key(self): return self.value,

class BigInt(Value):
	def __init__(self, value:int):
		self.value = value
	def _key(self): return self.value,

class Float(Value):
	""" Equal when the bits are equal, so a NaN equals itself. """
	def __init__(self, value:float):
		self.value = value
	def _key(self): return self.value,
	def _bits(self): return struct.pack("<d", self.value)
	def __eq__(self, other): return type(other) is Float and self._bits() == other._bits()
	def __hash__(self): return hash(self._bits())

class Bool(Value):
	def __init__(self, value:bool):
		self.value = bool(value)
	def _key(self): return self.value,

class NoneValue(Value):
	""" Python's None, as opposed to the absence of a value. """
	def _key(self): return ()
	def __repr__(self): return "None"

class RawNum(Value):
	""" A decimal-text number that normalize declined to guess the width or type of. """
	def __init__(self, instruction:Instruction):
		self.instruction = instruction
	def _key(self): return self.instruction,

	def parse(self) -> Value:
		"""
		For callers willing to take responsibility for the interpretation.
		Protocol 0 writes longs with a trailing L and floats in repr form.
		"""
		text = self.instruction.arg.strip()
		if self.instruction.opcode is op.FLOAT: return Float(float(text))
		if self.instruction.opcode is op.INT:
			if text == "01": return Bool(True)
			if text == "00": return Bool(False)
		return integer(int(text.rstrip("L")))

def integer(value:int) -> Value:
	""" Narrow to Int if it fits, else BigInt """
	return Int(value) if INT64_MIN <= value <= INT64_MAX else BigInt(value)

#######################################################################

def _binary_long(payload) -> Value:
	# Little-endian two's complement. The empty string is zero.
	return integer(int.from_bytes(payload, "little", signed=True))

def _legacy_string(payload) -> Value:
	# Not how pickle means it (the original text encoding is unknowable),
	# but the bytes survive either way.
	try: return String(str(payload, "utf-8"))
	except UnicodeDecodeError: return Bytes(payload)

_INTEGRAL = {op.BININT, op.BININT1, op.BININT2}
_UNICODE = {op.BINUNICODE, op.SHORT_BINUNICODE, op.BINUNICODE8}
_BYTES = {op.BINBYTES, op.SHORT_BINBYTES, op.BINBYTES8, op.BYTEARRAY8}
_LEGACY_STRING = {op.BINSTRING, op.SHORT_BINSTRING}
_DECIMAL = {op.INT, op.LONG, op.FLOAT}
_CONSTANT = {
	op.NEWTRUE: Bool(True),
	op.NEWFALSE: Bool(False),
	op.NONE: NoneValue(),
}

def normalize(value:Value) -> Value:
	""" Turn a Raw instruction into a canonical value, if it is a kind this function understands """
	if type(value) is not Raw: return value
	ins = value.instruction
	opcode = ins.opcode
	if opcode in _INTEGRAL: return Int(ins.arg)
	if opcode in (op.LONG1, op.LONG4): return _binary_long(ins.arg)
	if opcode is op.BINFLOAT: return Float(ins.arg)
	if opcode in _UNICODE: return String(ins.arg)
	if opcode in _BYTES: return Bytes(ins.arg)
	if opcode in _LEGACY_STRING: return _legacy_string(ins.arg)
	if opcode in _CONSTANT: return _CONSTANT[opcode]
	if opcode is op.INT and ins.arg == "01": return Bool(True)
	if opcode is op.INT and ins.arg == "00": return Bool(False)
	if opcode in _DECIMAL: return RawNum(ins)
	return value
