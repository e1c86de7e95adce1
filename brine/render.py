"""
Pretty-printing for value trees, so a person can read what came out of a pickle.
Small subtrees stay on one line; bigger ones get broken out and indented.
Anything nested more than max_depth levels down is drawn as an ellipsis.
"""
from typing import Iterable
from boozetools.support.foundation import Visitor
from .values import Value, App, Object, Build, PersId, Global, Seq, flat_repr, REPR_DEPTH

WIDTH = 100
INDENT = "  "

class Render(Visitor):
	def __init__(self, width:int=WIDTH, max_depth:int=REPR_DEPTH):
		self._width = width
		self._max_depth = max_depth
		self._flat = {}

	def render(self, value:Value, level:int=0, budget:int=None) -> str:
		if budget is None: budget = self._max_depth
		if budget <= 0: return "..."
		flat = flat_repr(value, budget, self._flat)
		room = self._width - (1 if level else 0)  # Nested parts get a trailing comma.
		if len(INDENT*level) + len(flat) <= room: return flat
		return self.visit(value, level, budget)

	def _block(self, head:str, parts:Iterable[str], level:int, opener="(", closer=")") -> str:
		pad = INDENT * (level+1)
		lines = [head+opener]
		lines.extend(pad+part+"," for part in parts)
		lines.append(INDENT*level + closer)
		return "\n".join(lines)

	def _list(self, items:list[Value], level:int, budget:int) -> str:
		if not items: return "[]"
		return self._block("", [self.render(v, level+1, budget) for v in items], level, "[", "]")

	def _applied(self, head:str, callee:Value, args:list[Value], level:int, budget:int) -> str:
		return self._block(head, [self.render(callee, level+1, budget-1), self._list(args, level+1, budget-1)], level)

	def visit_Value(self, leaf:Value, level:int, budget:int): return flat_repr(leaf, budget, self._flat)

	def visit_App(self, app:App, level:int, budget:int): return self._applied("App", app.callee, app.args, level, budget)
	def visit_Object(self, obj:Object, level:int, budget:int): return self._applied("Object", obj.cls, obj.args, level, budget)
	def visit_Global(self, glob:Global, level:int, budget:int): return self._applied("Global", glob.callee, glob.args, level, budget)

	def visit_Build(self, build:Build, level:int, budget:int):
		parts = [self.render(build.target, level+1, budget-1), self.render(build.state, level+1, budget-1)]
		return self._block("Build", parts, level)

	def visit_PersId(self, pers:PersId, level:int, budget:int):
		return self._block("PersId", [self.render(pers.pid, level+1, budget-1)], level)

	def visit_Seq(self, seq:Seq, level:int, budget:int):
		return self._block("Seq", [repr(seq.kind), self._list(seq.items, level+1, budget-1)], level)

def render(values:Iterable[Value], width:int=WIDTH, max_depth:int=REPR_DEPTH) -> str:
	""" One rendered value per entry, in stack order """
	renderer = Render(width, max_depth)
	return "\n".join(renderer.render(v) for v in values)
