from prompt_toolkit.layout import Layout, Window, HSplit, FormattedTextControl, Dimension
from prompt_toolkit.layout.containers import WindowAlign
from prompt_toolkit.layout.processors import BeforeInput
from prompt_toolkit.layout.controls import BufferControl
from prompt_toolkit.styles import Style as PromptStyle

from .preferences import DEFAULT_PRIMARY_COLOR

# Define colors as hex codes
MUTED_GRAY = '#888888'
ERROR_RED = '#ef4444'
DONE_GREEN = '#22c55e'
LIGHT_TEXT = '#1f2937'
DARK_TEXT = '#e5e7eb'


def create_style(primary_color: str = DEFAULT_PRIMARY_COLOR, theme: str = "dark"):
    """Create the application style from the user's theme and primary color"""
    text = DARK_TEXT if theme == "dark" else LIGHT_TEXT
    return PromptStyle.from_dict({
        'title': f'{primary_color} bold',
        'header': primary_color,
        'content': text,
        'done': f'{MUTED_GRAY} strike',
        'tag': primary_color,
        'mode': f'{primary_color} bold',
        'prompt': primary_color,
        'command': f'{primary_color} bold',
        'help': f'{MUTED_GRAY} italic',
        'status': DONE_GREEN,
        'warning': f'{ERROR_RED} bold',
    })


def create_layout(taskpad_content_fn, commands_content_fn, input_buffer, get_prompt_fn, get_help_message_fn, command_mode_fn, seen_commands_fn):
    """Create the main application layout"""
    taskpad = FormattedTextControl(taskpad_content_fn)
    commands = FormattedTextControl(commands_content_fn)

    return Layout(
        HSplit([
            # Main taskpad area
            Window(
                content=taskpad,
                wrap_lines=True,
                height=Dimension(preferred=15)
            ),
            # Command area
            Window(
                content=commands,
                height=lambda: 15 if command_mode_fn() else 0
            ),
            # Help message
            Window(
                content=FormattedTextControl(get_help_message_fn),
                height=lambda: 1 if not seen_commands_fn() else 0
            ),
            # Input prompt at bottom
            Window(
                BufferControl(
                    buffer=input_buffer,
                    input_processors=[BeforeInput(get_prompt_fn)],
                    focusable=True
                ),
                height=3,
                align=WindowAlign.LEFT,
                wrap_lines=True,
                always_hide_cursor=False
            )
        ])
    )
