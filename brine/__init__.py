"""
Simple, best-effort scraping of the Python pickle format.

Decode the bytes, run the stack machine, and get back a tree of generic values.
Nothing in the pickle ever gets imported, called, or constructed::

	from brine import decode_all, evaluate
	instructions = decode_all(open("data.pkl", "rb").read())
	values, memo = evaluate(instructions, resolve_references=True)

A checkpoint's state dict, for example, comes out looking something like::

	Build(
	  Global(
	    Global(Seq(Tuple, [String('collections'), String('OrderedDict')]), []),
	    [Seq(Tuple, []), Seq(Tuple, [Seq(Tuple, [String('emb.weight'), Global(...)]), ...])],
	  ),
	  ...
	)
"""
from .decoder import decode_one, decode_all, iter_instructions
from .evaluator import evaluate
from .memo import MemoTable, MAX_DEPTH
from .values import (
	Value, SeqKind, Raw, Ref, App, Object, Build, PersId, Global, Seq,
	String, Bytes, Int, BigInt, Float, Bool, NoneValue, RawNum, normalize, flat_repr,
)
from .diagnostics import (
	BrineError, DecodeError, EvaluationError, StackError, MemoError, ProtocolError, MalformedCollection,
)
from .render import render

def loads(data, *, max_depth:int=MAX_DEPTH) -> list[Value]:
	""" The usual case: decode through the first STOP and resolve everything. """
	values, _ = evaluate(decode_all(data, through_stop=True), True, max_depth=max_depth)
	return values
