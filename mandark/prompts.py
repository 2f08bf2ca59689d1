"""
Prompt templates for the edit request and the verification pass.
"""

from .editing.packets import EditPacket, Operation
from .editing.stream_parser import EDIT_END, EDIT_START, SEPARATOR, format_packet

EDIT_FORMAT_HELP = f"""\
Every line of the code below starts with a line number followed by "| ".
Line numbers are global across all files. Never include them in new code.

Express each change as an edit block, exactly like this:

{EDIT_START}
FILE: <file path as shown in the ### FILE header>
OPERATION: <replaceLines | insertAfterLine | deleteLines>
LINES: <start>-<end>   (for insertAfterLine: a single line number)
RATIONALE: <one short sentence>
{SEPARATOR}
<new lines, exactly as they should appear in the file>
{EDIT_END}

Rules:
- Line numbers always refer to the ORIGINAL code shown here, even when an
  earlier edit in your answer changes the same file.
- Edits to the same file must not overlap.
- deleteLines has no content after {SEPARATOR}.
- Keep indentation exact. Do not wrap content in markdown fences.
"""

SYSTEM_PROMPT = (
    "You are an expert software engineer who edits code precisely. "
    "You answer only with edit blocks in the requested format, "
    "plus at most a short explanation before them."
)


def task_prompt(code: str, task: str) -> str:
    """Build the main edit request."""
    return (
        f"{EDIT_FORMAT_HELP}\n"
        f"<code>\n{code}</code>\n\n"
        f"Task: {task}\n"
    )


ASK_SYSTEM_PROMPT = (
    "You are an expert software engineer answering questions about the code "
    "you are shown. Cite line numbers where they help. Do not propose edit blocks."
)


def ask_prompt(code: str, question: str) -> str:
    """Build a question about the code; the answer is shown, never applied."""
    return (
        'Every line of the code below starts with a line number followed by "| ".\n'
        f"<code>\n{code}</code>\n\n"
        f"Question: {question}\n"
    )


def verify_prompt(packet: EditPacket, original: str, context: str) -> str:
    """Build the verification request for one packet.

    *original* holds the tagged lines the packet anchors to (or the anchor
    line for insertions); *context* holds the surrounding tagged lines.
    """
    if packet.operation is Operation.INSERT_AFTER_LINE:
        target = "The edit inserts new lines after this line"
    else:
        target = "The edit changes these original lines"
    return f"""\
You are reviewing one proposed code edit before it is written to disk.

Surrounding original code (line number, then "| ", then text):
{context}

{target}:
{original}

Proposed edit:
{format_packet(packet)}

Check that the line numbers point at the code the edit means to change,
that the new content fits the surrounding code (indentation, brackets,
no duplicated or lost lines), and that it does what the rationale says.

Answer with exactly one of:
VERDICT: ACCEPT
VERDICT: REJECT <short reason>
VERDICT: CORRECT <short reason>
followed, for CORRECT only, by one corrected edit block in the same format.
"""
