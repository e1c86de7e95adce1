"""
The memo table, and the business of following references through it.

Pickles refer back to earlier values by memo id. Nothing stops a malicious
(or merely strange) pickle from making those references go around in circles,
so every walk here is bounded by max_depth. Hitting the bound is not an error:
the walk just stops and hands back whatever it had reached. That is a policy.

The resolve_target method is the one that matters for mutation: APPEND, SETITEM
and friends must change the real collection even when the stack holds only a
reference to it. Memo entries are the collections themselves, so returning the
entry is returning the handle.
"""
from typing import Iterator
from boozetools.support.foundation import Visitor
from .values import Value, Ref, Raw, App, Object, Build, PersId, Global, Seq, normalize
from .diagnostics import MemoError

MAX_DEPTH = 250

class MemoTable:
	_entries : dict[int, Value]

	def __init__(self, max_depth:int=MAX_DEPTH):
		self._entries = {}
		self.max_depth = max_depth

	def __len__(self): return len(self._entries)
	def __contains__(self, memo_id): return memo_id in self._entries
	def __iter__(self) -> Iterator[int]: return iter(sorted(self._entries))
	def __getitem__(self, memo_id:int) -> Value: return self.lookup(memo_id)
	def __repr__(self): return "<memo %r>"%dict(sorted(self._entries.items()))
	def items(self): return sorted(self._entries.items())

	def insert(self, memo_id:int, value:Value):
		""" Re-insertion overwrites """
		self._entries[memo_id] = value

	def lookup(self, memo_id:int) -> Value:
		try: return self._entries[memo_id]
		except KeyError: raise MemoError("Bad memo id %r"%memo_id, memo_id) from None

	def resolve(self, value:Value, recursive:bool=True) -> Value:
		"""
		Follow a chain of references, like Ref -> Ref -> Ref -> whatever, and return whatever.
		Does not look inside other kinds of value. Non-recursive resolution takes exactly one hop.
		"""
		hops = 0
		while isinstance(value, Ref):
			value = self.lookup(value.memo_id)
			if not recursive: break
			hops += 1
			if hops >= self.max_depth: break
		return value

	def resolve_target(self, value:Value) -> Value:
		"""
		Like resolve, but the result is the memo table's own entry rather than
		anything derived from it, so changes made to it stick.
		"""
		return self.resolve(value, recursive=True)

	def resolve_all(self, value:Value, fix_values:bool=True) -> Value:
		""" Rebuild the tree with every reference resolved and (optionally) every Raw normalized. """
		return Resolver(self, fix_values).descend(value, 0)

class Resolver(Visitor):
	"""
	Structural walk over a value tree. Composite nodes get rebuilt with each child
	resolved, so the result shares no mutable nodes with the memo table. Each memo
	entry is resolved once per walk; repeat references share the resolved node.

	A reference back to a memo entry already being expanded on the current path
	is left as a Ref: that's a cycle, and unrolling it would only produce a deep,
	wide tree of repetitions until the depth bound put a stop to it.
	"""
	def __init__(self, memo:MemoTable, fix_values:bool):
		self._memo = memo
		self._fix = fix_values
		self._expanding = set()
		self._finished = {}

	def descend(self, value:Value, depth:int) -> Value:
		if depth >= self._memo.max_depth: return value
		return self.visit(value, depth + 1)

	def visit_Ref(self, ref:Ref, depth:int):
		if ref.memo_id in self._expanding: return ref
		if ref.memo_id in self._finished: return self._finished[ref.memo_id]
		target = self._memo.resolve(ref)
		self._expanding.add(ref.memo_id)
		result = self.descend(target, depth)
		self._expanding.discard(ref.memo_id)
		self._finished[ref.memo_id] = result
		return result

	def visit_Raw(self, raw:Raw, depth:int):
		return normalize(raw) if self._fix else raw

	@staticmethod
	def visit_Value(leaf:Value, depth:int):
		return leaf

	def visit_App(self, app:App, depth:int):
		return App(self.descend(app.callee, depth), [self.descend(a, depth) for a in app.args])

	def visit_Object(self, obj:Object, depth:int):
		return Object(self.descend(obj.cls, depth), [self.descend(a, depth) for a in obj.args])

	def visit_Build(self, build:Build, depth:int):
		return Build(self.descend(build.target, depth), self.descend(build.state, depth))

	def visit_PersId(self, pers:PersId, depth:int):
		return PersId(self.descend(pers.pid, depth))

	def visit_Global(self, glob:Global, depth:int):
		return Global(self.descend(glob.callee, depth), [self.descend(a, depth) for a in glob.args])

	def visit_Seq(self, seq:Seq, depth:int):
		return Seq(seq.kind, [self.descend(item, depth) for item in seq.items])
