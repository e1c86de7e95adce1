import io, pickle, tempfile
from collections import OrderedDict
from contextlib import redirect_stdout
from pathlib import Path
import unittest
from unittest import mock

import brine
from brine import cmdline, opcodes as op
from brine.opcodes import Instruction
from brine.diagnostics import Report
from brine.decoder import decode_all
from brine.evaluator import evaluate
from brine.render import render
from brine.values import (
	Raw, Ref, Seq, SeqKind, Global, Build, PersId, Object, RawNum,
	String, Bytes, Int, BigInt, Float, Bool, NoneValue,
)

def Tuple(*items): return Seq(SeqKind.Tuple, list(items))
def List(*items): return Seq(SeqKind.List, list(items))
def Dict(*pairs): return Seq(SeqKind.Dict, [Tuple(k, v) for k, v in pairs])
def Name(module, name): return Tuple(String(module), String(name))

# Three thousand one-tuples, one inside the next, around a None.
DEEP_PICKLE = b"\x80\x02N" + b"\x85"*3000 + b"."

def _values(data:bytes):
	values, _ = evaluate(decode_all(data))
	return values

class Point:
	def __init__(self, x, y):
		self.x, self.y = x, y

class Stored:
	def __init__(self, key):
		self.key = key

class StoragePickler(pickle.Pickler):
	""" Keeps Stored things out of band, the way checkpoint writers do. """
	def persistent_id(self, obj):
		if isinstance(obj, Stored): return ("storage", obj.key)
		return None

def rebuild_tensor(storage, offset, size, stride, requires_grad):
	raise AssertionError("Nothing should ever call this.")

class Tensor:
	def __init__(self, key):
		self.key = key
	def __reduce__(self):
		return rebuild_tensor, (Stored(self.key), 0, (2, 3), (3, 1), False)

class CheckpointPickler(pickle.Pickler):
	def persistent_id(self, obj):
		if isinstance(obj, Stored): return ("storage", Point, str(obj.key), "cpu", 6)
		return None

def _with_storage(thing, protocol) -> bytes:
	buffer = io.BytesIO()
	StoragePickler(buffer, protocol=protocol).dump(thing)
	return buffer.getvalue()

class RealPickleTests(unittest.TestCase):
	""" Things the standard pickle module actually writes. """

	def test_dict_of_list(self):
		expect = [Dict((String("a"), List(Int(1), Int(2))), (String("b"), Bool(True)))]
		for proto in range(1, pickle.HIGHEST_PROTOCOL + 1):
			with self.subTest(proto=proto):
				self.assertEqual(expect, _values(pickle.dumps({'a': [1, 2], 'b': True}, protocol=proto)))

	def test_protocol_zero_leaves_text_alone(self):
		values = _values(pickle.dumps({'a': [1, 2], 'b': True}, protocol=0))
		text = lambda s: Raw(Instruction(op.UNICODE, s))
		number = lambda s: RawNum(Instruction(op.INT, s))
		expect = [Dict((text("a"), List(number("1"), number("2"))), (text("b"), Bool(True)))]
		self.assertEqual(expect, values)

	def test_tuples(self):
		expect = [Tuple(Int(1), Tuple(Int(2), Int(3)), Tuple())]
		for proto in range(1, pickle.HIGHEST_PROTOCOL + 1):
			with self.subTest(proto=proto):
				self.assertEqual(expect, _values(pickle.dumps((1, (2, 3), ()), protocol=proto)))

	def test_self_reference(self):
		snake = []
		snake.append(snake)
		for proto in (1, 2, 3):
			with self.subTest(proto=proto):
				self.assertEqual([List(Ref(0))], _values(pickle.dumps(snake, protocol=proto)))

	def test_shared_structure_stays_shared(self):
		shared = [1]
		values = _values(pickle.dumps((shared, shared), protocol=2))
		self.assertEqual([Tuple(List(Int(1)), List(Int(1)))], values)
		outer = values[0]
		self.assertIs(outer.items[0], outer.items[1])

	def test_doubling_chain_resolves_quickly(self):
		# Each memo entry is a pair of the entry before: a few hundred bytes
		# describing a tree with 2**99 leaves.
		data = bytearray(b"\x80\x02Nq\x00")
		for i in range(1, 100):
			data += b"h%ch%c\x86q%c"%(i-1, i-1, i)
		data += b"."
		values = brine.loads(bytes(data))
		self.assertEqual(100, len(values))
		top = values[-1]
		for _ in range(99):
			left, right = top.items
			self.assertIs(left, right)
			top = left
		self.assertEqual(NoneValue(), top)

	def test_instance(self):
		cls = Global(Name(Point.__module__, "Point"))
		expect = [Build(Object(cls, [Tuple()]), Dict((String("x"), Int(1)), (String("y"), Int(2))))]
		for proto in (2, 4):
			with self.subTest(proto=proto):
				self.assertEqual(expect, _values(pickle.dumps(Point(1, 2), protocol=proto)))

	def test_persistent_ids(self):
		for proto in (1, 2, 4):
			with self.subTest(proto=proto):
				values = _values(_with_storage([Stored(7), "x"], proto))
				self.assertEqual([List(PersId(Tuple(String("storage"), Int(7))), String("x"))], values)

	def test_textual_persistent_id(self):
		values = _values(_with_storage(Stored(7), 0))
		self.assertEqual([PersId(String("('storage', 7)"))], values)

	def test_assorted_leaves(self):
		specimen = [b"xy", 1 << 70, -5, 1 << 40, 2.5, {1, 2, 3}, frozenset({4}), None]
		expect = [List(
			Bytes(b"xy"), BigInt(1 << 70), Int(-5), Int(1 << 40), Float(2.5),
			Seq(SeqKind.Set, [Int(1), Int(2), Int(3)]), Seq(SeqKind.FrozenSet, [Int(4)]), NoneValue(),
		)]
		for proto in (4, 5):
			with self.subTest(proto=proto):
				self.assertEqual(expect, _values(pickle.dumps(specimen, protocol=proto)))

	def test_checkpoint_shape(self):
		buffer = io.BytesIO()
		CheckpointPickler(buffer, protocol=2).dump({"emb.weight": Tensor(0)})
		module = Tensor.__module__
		storage = PersId(Tuple(String("storage"), Global(Name(module, "Point")), String("0"), String("cpu"), Int(6)))
		arguments = Tuple(storage, Int(0), Tuple(Int(2), Int(3)), Tuple(Int(3), Int(1)), Bool(False))
		tensor = Global(Global(Name(module, "rebuild_tensor")), [arguments])
		self.assertEqual([Dict((String("emb.weight"), tensor))], _values(buffer.getvalue()))

	def test_ordered_dict_shape(self):
		data = pickle.dumps(OrderedDict([("a", 1), ("b", 2)]), protocol=2)
		entries = Tuple(Tuple(String("a"), Int(1)), Tuple(String("b"), Int(2)))
		expect = [Global(Global(Name("collections", "OrderedDict")), [Tuple(), entries])]
		self.assertEqual(expect, _values(data))

	def test_bytearray(self):
		self.assertEqual([Bytes(b"\x00\x01")], _values(pickle.dumps(bytearray(b"\x00\x01"), protocol=5)))

	def test_nothing_gets_imported(self):
		data = pickle.dumps(Point(1, 2), protocol=2).replace(Point.__module__.encode(), b"os").replace(b"Point", b"system")
		values = _values(data)
		self.assertEqual(Global(Name("os", "system")), values[0].target.cls)

class LoadsTests(unittest.TestCase):

	def test_loads(self):
		self.assertEqual([Dict((String("a"), Int(1)))], brine.loads(pickle.dumps({"a": 1})))

	def test_trailing_junk_is_ignored(self):
		self.assertEqual([Int(3)], brine.loads(pickle.dumps(3) + b"\xfe\xfe"))

	def test_depth_reaches_the_memo(self):
		nested = pickle.dumps([[[7]]], protocol=2)
		self.assertEqual([List(List(List(Int(7))))], brine.loads(nested))
		shallow, = brine.loads(nested, max_depth=1)
		self.assertEqual(SeqKind.List, shallow.kind)
		self.assertIsInstance(shallow.items[0], Ref)

class RenderTests(unittest.TestCase):

	def test_small_things_stay_flat(self):
		self.assertEqual("Int(1)\nSeq(List, [String('a')])", render([Int(1), List(String("a"))]))

	def test_big_things_break_out(self):
		text = render([List(Int(1), Int(2))], width=10)
		self.assertEqual("Seq(\n  List,\n  [\n    Int(1),\n    Int(2),\n  ],\n)", text)

	def test_every_line_fits_when_possible(self):
		tree, = _values(pickle.dumps(Point("a"*30, ["b"*30, "c"*30]), protocol=2))
		for line in render([tree], width=60).splitlines():
			self.assertLessEqual(len(line), 60, line)

	def test_deep_nesting_is_cut_short(self):
		deep, = _values(DEEP_PICKLE)
		text = render([deep], width=60, max_depth=10)
		self.assertIn("[...]", text)
		self.assertNotIn("None", text)
		for line in text.splitlines():
			self.assertLessEqual(len(line), 60, line)

class CommandLineTests(unittest.TestCase):

	def setUp(self) -> None:
		folder = tempfile.TemporaryDirectory()
		self.addCleanup(folder.cleanup)
		self.folder = Path(folder.name)
		patcher = mock.patch.object(Report, "complain_to_console", autospec=True)
		self.complain = patcher.start()
		self.addCleanup(patcher.stop)

	def _run(self, data:bytes, *flags):
		path = self.folder/"data.pkl"
		path.write_bytes(data)
		return self._run_path(path, *flags)

	def _run_path(self, path, *flags):
		stdout = io.StringIO()
		with redirect_stdout(stdout):
			status = cmdline.run(cmdline.parser.parse_args([*flags, str(path)]))
		return status, stdout.getvalue()

	def _issues(self) -> list[str]:
		report = self.complain.call_args[0][0]
		return report.issues

	def test_value_tree(self):
		status, text = self._run(pickle.dumps({"a": 1}, protocol=2))
		self.assertFalse(status)
		self.assertIn("Seq(Dict, [Seq(Tuple, [String('a'), Int(1)])])", text)
		self.complain.assert_not_called()

	def test_disassemble(self):
		status, text = self._run(pickle.dumps(1, protocol=2), "-d")
		self.assertFalse(status)
		self.assertEqual(["PROTO(2)", "BININT1(1)", "STOP"], [line.split(": ")[1] for line in text.splitlines()])

	def test_raw_shows_the_memo(self):
		status, text = self._run(pickle.dumps([1], protocol=2), "-r")
		self.assertFalse(status)
		self.assertIn("Ref(0)", text)
		self.assertIn("memo[0] = Seq(List, [Raw(BININT1(1))])", text)

	def test_bad_bytes(self):
		status, _ = self._run(b"K\x01\xff")
		self.assertEqual(1, status)
		self.assertIn("Unknown opcode 0xff", self._issues()[0])

	def test_truncated(self):
		status, _ = self._run(b"\x80\x02K")
		self.assertEqual(1, status)
		self.assertIn("ended in the middle", self._issues()[0])

	def test_evaluation_failure(self):
		status, _ = self._run(b"0.")
		self.assertEqual(1, status)
		self.assertIn("Stack underrun", self._issues()[0])

	def test_deeply_nested_pickle(self):
		status, text = self._run(DEEP_PICKLE)
		self.assertFalse(status)
		self.assertTrue(text.startswith("Seq("))
		self.assertIn("...", text)
		self.assertNotIn("None", text)
		self.complain.assert_not_called()

	def test_missing_file(self):
		status, _ = self._run_path(self.folder/"nonesuch.pkl")
		self.assertEqual(1, status)
		self.assertIn("nonesuch.pkl", self._issues()[0])

if __name__ == '__main__':
	unittest.main()
