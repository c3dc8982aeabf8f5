"""
Keyboard bindings for the taskpad.
"""

from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings

from .errors import DeskpadError
from .logger import get_logger
from .models import Task

logger = get_logger("keybindings")


def create_keybindings(app) -> KeyBindings:
    """Create and return the keybindings for the application."""
    kb = KeyBindings()
    editing = Condition(lambda: app.mode == app.InputMode.EDIT and not app.command_mode)

    @kb.add('escape', eager=True)
    def handle_escape(event):
        """Toggle command mode."""
        app.command_mode = not app.command_mode
        if app.command_mode:
            app.seen_commands = True
            if app.mode == app.InputMode.EDIT:
                app.mode = app.InputMode.COMMAND  # Properly exit edit mode
            app.input_buffer.reset()
        app.app.invalidate()

    @kb.add('c-c')
    def handle_exit(event):
        """Exit the application."""
        app.running = False
        event.app.exit()

    @kb.add('up', filter=editing)
    def handle_up(event):
        """Move selection up in edit mode."""
        total_items = len(app.entries())
        if total_items > 0:
            app.selected_index = (app.selected_index - 1) % total_items
            app.prefill_selected_content()
            app.app.invalidate()

    @kb.add('down', filter=editing)
    def handle_down(event):
        """Move selection down in edit mode."""
        total_items = len(app.entries())
        if total_items > 0:
            app.selected_index = (app.selected_index + 1) % total_items
            app.prefill_selected_content()
            app.app.invalidate()

    @kb.add('c-t', filter=editing, eager=True)
    def handle_complete_selected(event):
        """Complete the selected task without retyping its number."""
        entries = app.entries()
        if app.selected_index >= len(entries) or not isinstance(entries[app.selected_index], Task):
            app.log_message("Select a task to complete", 'warning')
            return
        try:
            app.complete(app.selected_index)
        except DeskpadError as e:
            app.log_message(f"ERROR: {e}", 'warning')
        app.input_buffer.reset()

    @kb.add('enter', eager=True)
    def handle_enter(event):
        """Process input when enter is pressed."""
        text = app.input_buffer.text
        logger.debug(f"Enter pressed: mode={app.mode} command_mode={app.command_mode} "
                     f"selected={app.selected_index} text={text!r}")

        app.submit(text)

        # Keep the text when an existing entry was just edited in place
        if app.mode != app.InputMode.EDIT or app.selected_index == 0:
            app.input_buffer.reset()
        app.app.invalidate()

    return kb
