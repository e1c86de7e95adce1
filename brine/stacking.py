"""
The evaluator's working storage: an ordered list of values with a few
conveniences for the mark-delimited argument groups the protocol likes.
Every underflow is an explicit StackError, never an IndexError.
"""

from .values import Value, Raw
from .diagnostics import StackError

class OperandStack:
	_items : list[Value]

	def __init__(self):
		self._items = []

	def __len__(self): return len(self._items)
	def __iter__(self): return iter(self._items)
	def __repr__(self): return "<stack %r>"%self._items

	def push(self, value:Value):
		assert isinstance(value, Value), value
		self._items.append(value)

	def pop(self) -> Value:
		if not self._items: raise StackError("Stack underrun")
		return self._items.pop()

	def pop_several(self, count:int) -> list[Value]:
		""" The topmost count items, in the order they were pushed """
		if len(self._items) < count:
			raise StackError("Stack underrun: needed %d items, had %d"%(count, len(self._items)))
		several = self._items[len(self._items)-count:]
		del self._items[len(self._items)-count:]
		return several

	def peek(self) -> Value:
		if not self._items: raise StackError("Unexpected empty stack")
		return self._items[-1]

	def find_mark(self) -> int:
		for index in range(len(self._items)-1, -1, -1):
			item = self._items[index]
			if isinstance(item, Raw) and item.is_mark(): return index
		raise StackError("Missing MARK")

	def pop_mark(self) -> list[Value]:
		""" Remove everything above the topmost mark, and the mark itself; return the former. """
		index = self.find_mark()
		above = self._items[index+1:]
		del self._items[index:]
		return above

	def contents(self) -> list[Value]:
		return list(self._items)
