"""
The stack machine: run a sequence of instructions against an operand stack
and a memo table, building generic values instead of calling anything.

Each opcode with special handling has an _exec_ function below, found by name
and collected into the EXECUTE table when the module loads. Everything else
gets pushed verbatim as a Raw value for the normalize pass to deal with later.

Nothing here knows about any particular class or callable. A REDUCE of
some OrderedDict is just a Global node like any other.
"""
from typing import Iterable
from .opcodes import Instruction, BY_NAME, HIGHEST_PROTOCOL
from .values import Value, Raw, Ref, Object, Build, PersId, Global, Seq, SeqKind, String
from .stacking import OperandStack
from .memo import MemoTable, MAX_DEPTH
from .diagnostics import EvaluationError, StackError, MemoError, ProtocolError, MalformedCollection

class Machine:
	""" State for one evaluation. Not shared, not reused. """
	def __init__(self, max_depth:int=MAX_DEPTH):
		self.stack = OperandStack()
		self.memo = MemoTable(max_depth)
		self.halted = False

	def step(self, ins:Instruction):
		try: fn = EXECUTE[ins.opcode]
		except KeyError: self.stack.push(Raw(ins))
		else: fn(self, ins)

	def mutable_top(self, why:str):
		""" The real collection under the stack top, reached through any references """
		target = self.memo.resolve_target(self.stack.peek())
		if not isinstance(target, (Global, Seq)):
			raise StackError("Bad stack top for "+why, "Global or Seq", type(target).__name__)
		return target

	def store(self, memo_id:int, value:Value):
		self.memo.insert(memo_id, value)

def evaluate(instructions:Iterable[Instruction], resolve_references:bool=True, *, max_depth:int=MAX_DEPTH) -> tuple[list[Value], MemoTable]:
	"""
	Execute instructions in order until they run out or a STOP turns up.
	Returns whatever is left on the stack, along with the memo table,
	so a caller can resolve whatever references remain in their own way.
	With resolve_references, every stack value is fully resolved and normalized first.
	"""
	machine = Machine(max_depth)
	for index, ins in enumerate(instructions):
		try: machine.step(ins)
		except EvaluationError as e:
			e.locate(index, ins.opcode.name)
			raise
		if machine.halted: break
	values = machine.stack.contents()
	if resolve_references:
		values = [machine.memo.resolve_all(v) for v in values]
	return values, machine.memo

def _pairs(items:list[Value]) -> list[Value]:
	""" [k, v, k, v] -> [(k, v), (k, v)] """
	if len(items) % 2:
		raise MalformedCollection("Odd number of items (%d) for key/value pairs"%len(items))
	return [Seq(SeqKind.Tuple, [k, v]) for k, v in zip(items[0::2], items[1::2])]

def _memo_id(text:str) -> int:
	# Technically a memo key could be any string, but in practice it never is.
	try: return int(text)
	except ValueError: raise MemoError("Bad memo id %r"%text, text) from None

def _qualified_name(module:Value, name:Value) -> Seq:
	return Seq(SeqKind.Tuple, [module, name])

###############################################################################
# Stack manipulation

def _exec_MARK(m:Machine, ins): m.stack.push(Raw(ins))
def _exec_STOP(m:Machine, ins): m.halted = True
def _exec_POP(m:Machine, ins): m.stack.pop()
def _exec_POP_MARK(m:Machine, ins): m.stack.pop_mark()

def _exec_DUP(m:Machine, ins):
	m.stack.push(m.stack.peek())

def _exec_PROTO(m:Machine, ins):
	if ins.arg > HIGHEST_PROTOCOL: raise ProtocolError(ins.arg, HIGHEST_PROTOCOL)

def _exec_FRAME(m:Machine, ins):
	""" Framing is a hint for buffered readers. It has no effect on the stack. """

def _exec_READONLY_BUFFER(m:Machine, ins):
	""" Read-only-ness is not a distinction the value tree makes. """
	m.stack.peek()

###############################################################################
# Memo

def _put(m:Machine, memo_id:int):
	m.store(memo_id, m.stack.pop())
	m.stack.push(Ref(memo_id))

def _exec_PUT(m:Machine, ins): _put(m, _memo_id(ins.arg))
def _exec_BINPUT(m:Machine, ins): _put(m, ins.arg)
def _exec_LONG_BINPUT(m:Machine, ins): _put(m, ins.arg)

def _exec_GET(m:Machine, ins): m.stack.push(Ref(_memo_id(ins.arg)))
def _exec_BINGET(m:Machine, ins): m.stack.push(Ref(ins.arg))
def _exec_LONG_BINGET(m:Machine, ins): m.stack.push(Ref(ins.arg))

def _exec_MEMOIZE(m:Machine, ins):
	# The top stays put, and the memo shares it, so later mutation shows through both.
	m.store(len(m.memo), m.stack.peek())

###############################################################################
# Containers

def _exec_EMPTY_LIST(m:Machine, ins): m.stack.push(Seq(SeqKind.List))
def _exec_EMPTY_DICT(m:Machine, ins): m.stack.push(Seq(SeqKind.Dict))
def _exec_EMPTY_TUPLE(m:Machine, ins): m.stack.push(Seq(SeqKind.Tuple))
def _exec_EMPTY_SET(m:Machine, ins): m.stack.push(Seq(SeqKind.Set))

def _exec_LIST(m:Machine, ins): m.stack.push(Seq(SeqKind.List, m.stack.pop_mark()))
def _exec_TUPLE(m:Machine, ins): m.stack.push(Seq(SeqKind.Tuple, m.stack.pop_mark()))
def _exec_FROZENSET(m:Machine, ins): m.stack.push(Seq(SeqKind.FrozenSet, m.stack.pop_mark()))
def _exec_DICT(m:Machine, ins): m.stack.push(Seq(SeqKind.Dict, _pairs(m.stack.pop_mark())))

def _exec_TUPLE1(m:Machine, ins): m.stack.push(Seq(SeqKind.Tuple, m.stack.pop_several(1)))
def _exec_TUPLE2(m:Machine, ins): m.stack.push(Seq(SeqKind.Tuple, m.stack.pop_several(2)))
def _exec_TUPLE3(m:Machine, ins): m.stack.push(Seq(SeqKind.Tuple, m.stack.pop_several(3)))

def _exec_APPEND(m:Machine, ins):
	item = m.stack.pop()
	m.mutable_top("APPEND").args.append(item)

def _exec_APPENDS(m:Machine, ins):
	items = m.stack.pop_mark()
	m.mutable_top("APPENDS").args.extend(items)

def _exec_ADDITEMS(m:Machine, ins):
	items = m.stack.pop_mark()
	m.mutable_top("ADDITEMS").args.extend(items)

def _exec_SETITEM(m:Machine, ins):
	value = m.stack.pop()
	key = m.stack.pop()
	m.mutable_top("SETITEM").args.append(Seq(SeqKind.Tuple, [key, value]))

def _exec_SETITEMS(m:Machine, ins):
	# A Global collects each batch as one tuple of pairs. A Seq keeps its items as pairs.
	pairs = _pairs(m.stack.pop_mark())
	target = m.mutable_top("SETITEMS")
	if isinstance(target, Global): target.args.append(Seq(SeqKind.Tuple, pairs))
	else: target.args.extend(pairs)

###############################################################################
# Names, objects, and calls

def _exec_GLOBAL(m:Machine, ins):
	module, name = ins.arg
	m.stack.push(Global(_qualified_name(String(module), String(name))))

def _exec_STACK_GLOBAL(m:Machine, ins):
	name = m.memo.resolve(m.stack.pop())
	module = m.memo.resolve(m.stack.pop())
	m.stack.push(Global(_qualified_name(module, name)))

def _exec_REDUCE(m:Machine, ins):
	args = m.memo.resolve(m.stack.pop())
	callee = m.memo.resolve(m.stack.pop())
	m.stack.push(Global(callee, [args]))

def _exec_BUILD(m:Machine, ins):
	state = m.memo.resolve(m.stack.pop())
	target = m.memo.resolve(m.stack.pop())
	m.stack.push(Build(target, state))

def _exec_INST(m:Machine, ins):
	module, name = ins.arg
	args = m.stack.pop_mark()
	m.stack.push(Object(_qualified_name(String(module), String(name)), args))

def _exec_OBJ(m:Machine, ins):
	group = m.stack.pop_mark()
	if not group: raise StackError("OBJ needs a class after the mark")
	m.stack.push(Object(group[0], group[1:]))

def _exec_NEWOBJ(m:Machine, ins):
	args = m.stack.pop()
	cls = m.stack.pop()
	m.stack.push(Object(cls, [args]))

def _exec_NEWOBJ_EX(m:Machine, ins):
	kwargs = m.stack.pop()
	args = m.stack.pop()
	cls = m.stack.pop()
	m.stack.push(Object(cls, [Seq(SeqKind.Tuple, [args, kwargs])]))

def _exec_PERSID(m:Machine, ins): m.stack.push(PersId(String(ins.arg)))
def _exec_BINPERSID(m:Machine, ins): m.stack.push(PersId(m.stack.pop()))

###############################################################################

EXECUTE = {}

def attach_execution_methods(python_scope):
	for _k, _v in list(python_scope.items()):
		if _k.startswith("_exec_"):
			EXECUTE[BY_NAME[_k[len("_exec_"):]]] = _v

attach_execution_methods(globals())
