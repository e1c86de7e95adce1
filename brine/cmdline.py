"""
Peek inside a pickle file without unpickling it.

{0}

For example:

    brine checkpoint/data.pkl

will print the value tree that data.pkl describes, if possible, or else try to explain why not.

    brine -d checkpoint/data.pkl

will list the instructions instead, one per line, with byte offsets.

    brine -h

will explain all the arguments.
"""
import sys, argparse
from pathlib import Path

parser = argparse.ArgumentParser(
	prog="brine",
	description="Decode a pickle into a generic value tree without executing any of it.",
)
parser.add_argument("pickle", help="path to a pickle file, e.g. archive/data.pkl from a checkpoint")
parser.add_argument('-d', "--disassemble", action="store_true", help="List the decoded instructions rather than evaluate them.")
parser.add_argument('-r', "--raw", action="store_true", help="Do not resolve memo references; also show the memo table.")
parser.add_argument("--depth", type=int, default=None, help="Ceiling on reference-resolution depth (default 250).")
parser.add_argument('-v', "--verbose", action="count", help="Say more about what is going on. Repeat for even more.")

def run(args):
	from .diagnostics import Report, DecodeError, EvaluationError
	from .decoder import iter_instructions
	from .evaluator import evaluate
	from .memo import MAX_DEPTH
	from .render import render
	report = Report(verbose=args.verbose)
	path = Path(args.pickle)
	try: data = path.read_bytes()
	except OSError as e:
		report.no_such_file(path, e)
		report.complain_to_console()
		return 1
	report.info("Read %d bytes from %s"%(len(data), path))
	try:
		listing = list(iter_instructions(data, through_stop=True))
	except DecodeError as e:
		report.bad_bytes(data, e)
		report.complain_to_console()
		return 1
	report.info("Decoded %d instructions"%len(listing))
	if args.disassemble:
		for position, ins in listing:
			print("%8d: %r"%(position, ins))
		return
	depth = MAX_DEPTH if args.depth is None else args.depth
	try:
		values, memo = evaluate([ins for _, ins in listing], not args.raw, max_depth=depth)
	except EvaluationError as e:
		report.bad_evaluation(e)
		report.complain_to_console()
		return 1
	report.info("Stack holds %d value(s); memo holds %d"%(len(values), len(memo)))
	print(render(values))
	if args.raw:
		for memo_id, value in memo.items():
			print("memo[%d] = %s"%(memo_id, render([value])))

def main():
	if len(sys.argv) > 1:
		exit(run(parser.parse_args()))
	else:
		print(__doc__.strip().format(parser.format_usage()))
