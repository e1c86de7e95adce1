"""
Everything that can go wrong, and the means to explain it politely.

The exception classes form a closed set. Decoding problems carry a byte offset.
Evaluation problems carry the instruction number and opcode that tripped them,
which the evaluator fills in on the way out.

The Report is for the command-line tool: it gathers progress notes and complaints
and shows them on the console, with a picture of the offending bytes where possible.
"""
import sys, random
from typing import Optional
from boozetools.support.failureprone import SourceText, illustration

class BrineError(Exception):
	""" Root of everything that can go wrong while picking apart a pickle. """

class DecodeError(BrineError):
	""" The bytes do not spell a valid instruction at this position. """
	def __init__(self, position:int, reason:str, opcode:Optional[str]=None):
		self.position, self.reason, self.opcode = position, reason, opcode
		where = "at byte %d"%position if opcode is None else "in %s at byte %d"%(opcode, position)
		super().__init__("%s %s"%(reason, where))

class EvaluationError(BrineError):
	index: Optional[int] = None
	opcode: Optional[str] = None

	def locate(self, index:int, opcode:str):
		""" The evaluator calls this once the failing instruction is known. """
		self.index, self.opcode = index, opcode
		self.args = ("%s (instruction %d, %s)"%(self.args[0], index, opcode),)

class StackError(EvaluationError):
	""" Underflow, missing mark, or the wrong kind of thing on top of the stack. """
	def __init__(self, message:str, expected:Optional[str]=None, found:Optional[str]=None):
		self.expected, self.found = expected, found
		if found is not None: message = "%s: expected %s, found %s"%(message, expected, found)
		super().__init__(message)

class MemoError(EvaluationError):
	def __init__(self, message:str, memo_id=None):
		self.memo_id = memo_id
		super().__init__(message)

class ProtocolError(EvaluationError):
	def __init__(self, proto:int, highest:int):
		self.proto = proto
		super().__init__("Unsupported protocol %d (highest known is %d)"%(proto, highest))

class MalformedCollection(EvaluationError):
	""" Key/value material that does not come in pairs. """

def _outburst():
	particle = ["Oh, ", "Well, ", "Aw, ", "", ""]
	minced_oaths = ['Drat', 'Rats', 'Curses', 'Fiddlesticks', 'Good Grief', 'Nuts', 'Great Scott', 'Crikey']
	resignations = [
		'I am undone.',
		'I cannot continue.',
		'This pickle has gone sour.',
		'I need to ask for help.',
	]
	return "%s%s! %s"%tuple(map(random.choice, (particle, minced_oaths, resignations)))

BYTES_PER_LINE = 16
_LINE_WIDTH = 10 + 3 * BYTES_PER_LINE  # Including the line break.

def hex_dump(data) -> str:
	""" Classic offset-and-hex layout, one line per sixteen bytes. """
	lines = []
	for base in range(0, len(data), BYTES_PER_LINE):
		chunk = bytes(data[base:base+BYTES_PER_LINE])
		lines.append("%08x  %s"%(base, ' '.join('%02x'%b for b in chunk)))
	return '\n'.join(lines)

def hex_slice(position:int) -> slice:
	""" Where, within the text of a hex_dump, the byte at this position is drawn """
	row, col = divmod(position, BYTES_PER_LINE)
	start = row * _LINE_WIDTH + 10 + 3 * col
	return slice(start, start+2)

class Report:
	""" Collects complaints for the console. Might this end up participating in a result-monad? """
	def __init__(self, *, verbose:int=0):
		self._verbose = verbose or 0   # Because None is incomparable.
		self.issues = []

	def info(self, *args):
		if self._verbose:
			print(*args, file=sys.stderr)

	def issue(self, text:str):
		self.issues.append(text)

	def bad_bytes(self, data, error:DecodeError):
		""" Show which byte the decoder choked on """
		if error.position >= len(data) and data:
			return self.unexpected_end(data, error)
		intro = "The decoder could not make sense of these bytes:"
		source = SourceText(hex_dump(data))
		picture = source.complaint(hex_slice(error.position), str(error))
		self.issue('\n'.join([intro, picture]))

	def unexpected_end(self, data, error:DecodeError):
		""" Same idea as bad_bytes, but the trouble is the absence of bytes. """
		intro = "The input ended in the middle of an instruction:"
		tail = hex_dump(data).rsplit('\n', 1)[-1]
		picture = illustration(tail, len(tail), 1, prefix=' >>> ', caption=str(error))
		self.issue('\n'.join([intro, picture]))

	def bad_evaluation(self, error:EvaluationError):
		intro = "The stack machine gave up:"
		self.issue('\n'.join([intro, "    "+str(error)]))

	def no_such_file(self, path, cause:OSError):
		self.issue("Something went pear-shaped while trying to read %s: %s"%(path, cause))

	def complain_to_console(self):
		""" Emit all the issues to the console. """
		if self.issues:
			print("*"*60, file=sys.stderr)
			print(_outburst(), file=sys.stderr)
		for i in self.issues:
			print("  -"*20, file=sys.stderr)
			print(i, file=sys.stderr)
		sys.stderr.flush()
