import shlex
from typing import List, Optional, Union

from prompt_toolkit import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.formatted_text import FormattedText

from .analytics import Analytics
from .commands import COMMANDS, format_tag, format_tags, parse_tag_args, process_hashtags
from .errors import DeskpadError, ErrorReporter, LoggingErrorReporter, ValidationFailure
from .keybindings import create_keybindings
from .links import LinkStore
from .logger import get_logger
from .models import Note, Task
from .preferences import Preferences
from .store import EntityStore, NoteStore, ProjectStore, TaskStore
from .tags import TagColors
from .ui import create_layout, create_style

logger = get_logger("app")

Entry = Optional[Union[Task, Note]]


class InputMode:
    NOTE = "NOTE"
    COMMAND = "COMMAND"
    TASK = "TASK"
    EDIT = "EDIT"
    COMPLETE = "COMPLETE"


class Taskpad:
    """
    Terminal front end over the stores it is given.

    Entries are numbered in display order: in EDIT mode slot 0 is the
    "new task" line, then tasks and notes in canonical order.
    """

    def __init__(self, tasks: TaskStore, notes: NoteStore, links: Optional[LinkStore] = None,
                 preferences: Optional[Preferences] = None, tag_colors: Optional[TagColors] = None,
                 reporter: Optional[ErrorReporter] = None, projects: Optional[ProjectStore] = None,
                 input=None, output=None):
        self.tasks = tasks
        self.notes = notes
        self.links = links
        self.preferences = preferences
        self.tag_colors = tag_colors
        self.reporter = reporter or LoggingErrorReporter()
        self.projects = projects
        self.analytics = Analytics(tasks, projects)
        self.mode = InputMode.EDIT  # Start in edit mode
        self.command_mode = False
        self.running = True
        self.status_message = None  # Store current status/warning message
        self.message_style = 'status'  # Can be 'status' or 'warning'
        self.selected_index = 0  # Track currently selected item
        self.seen_commands = False  # Track if user has seen command menu
        self.search_query = ""
        self.InputMode = InputMode  # Make InputMode accessible to other modules
        self._undo_stack: List[Union[EntityStore, LinkStore]] = []
        self._reported = len(getattr(self.reporter, "messages", []))

        self.input_buffer = Buffer(
            multiline=True,
            enable_history_search=True
        )

        if preferences is not None:
            self.style = create_style(preferences.primary_color, preferences.theme)
        else:
            self.style = create_style()

        self.layout = create_layout(
            self.get_taskpad_content,
            self.get_commands_content,
            self.input_buffer,
            self.get_prompt,
            self.get_help_message,
            lambda: self.command_mode,
            lambda: self.seen_commands
        )

        self.kb = create_keybindings(self)

        self.app = Application(
            layout=self.layout,
            key_bindings=self.kb,
            style=self.style,
            full_screen=False,
            erase_when_done=False,
            mouse_support=False,
            input=input,
            output=output
        )

    # Display

    def visible_tasks(self) -> List[Task]:
        return self.tasks.search(self.search_query)

    def visible_notes(self) -> List[Note]:
        return self.notes.search(self.search_query)

    def entries(self) -> List[Entry]:
        """All entries in display order"""
        entries: List[Entry] = []
        if self.mode == InputMode.EDIT:
            entries.append(None)  # Placeholder for new task slot
        entries.extend(self.visible_tasks())
        entries.extend(self.visible_notes())
        return entries

    def get_taskpad_content(self):
        """Generate the main content area text"""
        title = "DESKPAD"
        if self.preferences is not None:
            title = f"{self.preferences.username.upper()}'S DESKPAD"
        lines = [
            ('class:title', f"{title}\n\n"),
            ('class:header', "ID    TYPE     CONTENT\n"),
            ('class:header', "---   ----     -------\n")
        ]

        for i, entry in enumerate(self.entries()):
            selected = self.mode == InputMode.EDIT and i == self.selected_index
            if entry is None:
                entry_type, content, tags, done = "NEW", "[Type here to create new tasks]", [], False
            elif isinstance(entry, Task):
                entry_type, content, tags, done = "TASK", entry.text, entry.tags, entry.completed
                if entry.due_date is not None:
                    content += f" (due {entry.due_date.isoformat()})"
            else:
                text = entry.content or entry.title
                entry_type, content, tags, done = "NOTE", text[:50] + "..." if len(text) > 50 else text, entry.tags, False
            style = 'class:done' if done else 'class:content'
            if selected:
                style += ' reverse'
            lines.extend([
                (style, f"{i:<6}"),
                (style, f"{entry_type:<8}"),
                (style, content),
            ])
            lines.extend(self._tag_fragments(tags))
            lines.append((style, "\n"))

        if self.search_query:
            lines.append(('class:help', f"\nFiltered by '{self.search_query}'\n"))

        if self.status_message:
            lines.extend([
                ('class:content', "\n"),
                (f'class:{self.message_style}', f"{self.status_message}\n")
            ])

        return lines

    def _tag_fragments(self, tags: List[str]):
        fragments = []
        for tag in tags:
            style = f"fg:{self.tag_colors.ensure_color(tag)}" if self.tag_colors is not None else 'class:tag'
            fragments.append((style, " " + format_tag(tag)))
        return fragments

    def get_commands_content(self):
        """Generate the commands area text"""
        if not self.command_mode:
            return []

        lines = [
            ('class:title', "\nAVAILABLE COMMANDS\n\n")
        ]
        for cmd, desc in COMMANDS.items():
            lines.extend([
                ('class:command', f"{cmd:<10}"),
                ('class:content', f"{desc}\n")
            ])
        lines.append(('class:content', "\n"))
        return lines

    def get_prompt(self):
        """Generate the input prompt"""
        mode_str = "COMMAND" if self.command_mode else self.mode
        return FormattedText([
            ('class:mode', mode_str),
            ('class:prompt', " > ")
        ])

    def get_help_message(self):
        # Only show help until the user has entered a command
        if self.seen_commands:
            return []
        return FormattedText([
            ('class:help', "Press 'Escape' to enter command mode, or type commands directly using '/' such as '/task', '/exit', etc.")
        ])

    def log_message(self, message: str, style: str = 'status'):
        """Set a status message with optional style"""
        self.status_message = message
        self.message_style = style
        self.app.invalidate()

    def _check_persistence(self) -> None:
        """Surface the newest reporter message, if a store reported one."""
        messages = getattr(self.reporter, "messages", [])
        if len(messages) > self._reported:
            self._reported = len(messages)
            self.log_message(messages[-1], 'warning')

    def prefill_selected_content(self):
        """Pre-fill input buffer with currently selected item's content"""
        entries = self.entries()
        if self.selected_index >= len(entries):
            return

        entry = entries[self.selected_index]
        if entry is None:
            self.input_buffer.reset()
            return

        content = entry.text if isinstance(entry, Task) else entry.content
        if entry.tags:
            content += " " + format_tags(entry.tags)
        self.input_buffer.text = content
        self.input_buffer.cursor_position = len(content)

    # Mutations

    def _touched(self, store) -> None:
        self._undo_stack.append(store)

    def _entry(self, number: int) -> Entry:
        entries = self.entries()
        if number >= len(entries) or number < 0:
            raise ValidationFailure("Invalid item number")
        return entries[number]

    def _task(self, number: int) -> Task:
        entry = self._entry(number)
        if entry is None:
            raise ValidationFailure("Cannot use the new task slot")
        if not isinstance(entry, Task):
            raise ValidationFailure("Cannot complete a note")
        return entry

    def add_task(self, text: str) -> Optional[Task]:
        cleaned_text, tags = process_hashtags(text)
        if not cleaned_text:
            self.log_message("Task text cannot be empty", 'warning')
            return None
        task = self.tasks.add({"text": cleaned_text, "tags": tags})
        self._touched(self.tasks)
        self.log_message(f"Added new task: {cleaned_text}")
        return task

    def add_note(self, text: str) -> Optional[Note]:
        cleaned_text, tags = process_hashtags(text)
        if not cleaned_text:
            self.log_message("Note cannot be empty", 'warning')
            return None
        note = self.notes.add({"title": cleaned_text.splitlines()[0][:50], "content": cleaned_text, "tags": tags})
        self._touched(self.notes)
        self.log_message(f"Added new note: {cleaned_text}")
        return note

    def complete(self, number: int) -> None:
        task = self._task(number)
        if task.completed:
            self.log_message(f"Task {number} is already completed", 'warning')
            return
        self.tasks.complete_task(task.id)
        self._touched(self.tasks)
        message = f"Marked task {number} as completed"
        if self.tasks.last_spawned is not None:
            message += f", next due {self.tasks.last_spawned.due_date.isoformat()}"
        self.log_message(message)

    def reopen(self, number: int) -> None:
        task = self._task(number)
        self.tasks.reopen_task(task.id)
        self._touched(self.tasks)
        self.log_message(f"Reopened task {number}")

    def delete(self, number: int) -> None:
        entry = self._entry(number)
        if entry is None:
            raise ValidationFailure("Cannot delete the new task slot")
        store = self.tasks if isinstance(entry, Task) else self.notes
        store.remove(entry.id)
        self._touched(store)
        if self.selected_index >= len(self.entries()):
            self.selected_index = 0
        self.log_message(f"Deleted {'task' if store is self.tasks else 'note'} {number}")

    def tag(self, number: int, tags_str: str) -> None:
        entry = self._entry(number)
        if entry is None:
            raise ValidationFailure("Cannot add tags to new task slot")
        tags = parse_tag_args(tags_str)
        if not tags:
            raise ValidationFailure("No valid tags provided")
        store = self.tasks if isinstance(entry, Task) else self.notes
        store.update(entry.id, {"tags": entry.tags + [t for t in tags if t not in entry.tags]})
        self._touched(store)
        tag_list = ", ".join(f"'{t}'" for t in tags)
        self.log_message(f"Added tags {tag_list} to {'task' if store is self.tasks else 'note'} {number}")

    def edit_selected(self, text: str) -> None:
        entry = self._entry(self.selected_index)
        cleaned_text, tags = process_hashtags(text)
        if entry is None:
            self.add_task(text)
        elif isinstance(entry, Task):
            self.tasks.update(entry.id, {"text": cleaned_text, "tags": tags})
            self._touched(self.tasks)
            self.log_message(f"Updated task {self.selected_index}")
        else:
            self.notes.update(entry.id, {"content": cleaned_text, "tags": tags})
            self._touched(self.notes)
            self.log_message(f"Updated note {self.selected_index}")

    def undo(self) -> None:
        while self._undo_stack:
            store = self._undo_stack.pop()
            if store.undo():
                self.log_message("Undid last change")
                return
        self.log_message("Nothing to undo", 'warning')

    def stats(self) -> str:
        rate = self.analytics.completion_rate()
        return (
            f"Completed {rate.completed}/{rate.total} ({rate.rate}%) | "
            f"streak {self.analytics.current_streak()} days | "
            f"overdue {self.analytics.overdue_count()} | "
            f"avg {self.analytics.average_completion_time()}h | "
            f"best day {self.analytics.most_productive_day()}"
        ) + "".join(
            f" | {group.project.name if group.project else group.key} {group.completed}/{group.total}"
            for group in self.analytics.project_stats()
        )

    def add_link(self, args: str) -> None:
        if self.links is None:
            raise ValidationFailure("Links are not available")
        try:
            parts = shlex.split(args)
        except ValueError as e:
            raise ValidationFailure(f"Could not read arguments: {e}")
        if len(parts) != 3:
            raise ValidationFailure("Use: link <section> <name> <url>")
        section, name, url = parts
        link = self.links.add_link(section, name, url)
        self._touched(self.links)
        self.log_message(f"Saved {link.url} to {section}")

    # Input handling

    def handle_input(self, text: str) -> None:
        """Process submitted buffer text outside command mode."""
        if self.mode == InputMode.TASK:
            self.add_task(text)
        elif self.mode == InputMode.NOTE:
            self.add_note(text)
        elif self.mode == InputMode.COMPLETE:
            try:
                self.complete(int(text))
            except ValueError:
                self.log_message("Please enter a valid task number", 'warning')
        elif self.mode == InputMode.EDIT:
            self.edit_selected(text)

    def submit(self, text: str) -> bool:
        """Enter pressed with `text` in the buffer; errors become status messages."""
        self.seen_commands = True
        try:
            if text.startswith('/'):
                return self.handle_command(text[1:])
            if self.command_mode:
                return self.handle_command(text)
            self.handle_input(text)
        except DeskpadError as e:
            logger.debug(f"Rejected input {text!r}: {e}")
            self.log_message(f"ERROR: {e}", 'warning')
        self._check_persistence()
        return True

    def _number_arg(self, rest: str, usage: str) -> int:
        try:
            return int(rest.strip())
        except ValueError:
            raise ValidationFailure(f"Invalid item number. Use: {usage}")

    def handle_command(self, command: str) -> bool:
        """Handle a command string"""
        command = command.strip()
        name, _, rest = command.partition(" ")
        cmd = name.lower()
        self.status_message = None  # Clear previous message

        if cmd == "exit":
            self.running = False
            if self.app.is_running:
                self.app.exit()
            return False
        elif cmd == "task":
            self.mode = InputMode.TASK
            self.command_mode = False
            self.log_message("Switched to TASK mode")
        elif cmd == "note":
            self.mode = InputMode.NOTE
            self.command_mode = False
            self.log_message("Switched to NOTE mode")
        elif cmd == "edit":
            self.mode = InputMode.EDIT
            self.command_mode = False
            # Always start with the "new task" slot selected
            self.selected_index = 0
            self.prefill_selected_content()
            self.log_message("Switched to EDIT mode")
        elif cmd == "command":  # Hidden command to enter command mode
            self.command_mode = True
            self.app.invalidate()
        elif cmd == "complete":
            if not rest.strip():
                self.mode = InputMode.COMPLETE
                self.command_mode = False
                self.log_message("Switched to COMPLETE mode - Enter task number to complete")
            else:
                self.complete(self._number_arg(rest, "complete <item_number>"))
        elif cmd == "reopen":
            self.reopen(self._number_arg(rest, "reopen <item_number>"))
        elif cmd == "delete":
            self.delete(self._number_arg(rest, "delete <item_number>"))
        elif cmd == "tag":
            item, _, tags_str = rest.strip().partition(" ")
            try:
                number = int(item)
            except ValueError:
                raise ValidationFailure("Invalid item number. Use: tag <item_number> tag1 tag2 [[multi word tag]] tag3")
            self.tag(number, tags_str)
        elif cmd == "search":
            self.search_query = rest.strip()
            self.selected_index = 0
            if self.search_query:
                count = len(self.visible_tasks()) + len(self.visible_notes())
                self.log_message(f"{count} items match '{self.search_query}'")
            else:
                self.log_message("Search cleared")
        elif cmd == "undo":
            self.undo()
        elif cmd == "stats":
            self.log_message(self.stats())
        elif cmd == "link":
            self.add_link(rest)
        else:
            self.log_message(f"ERROR: Unknown command '{command}'", 'warning')
        return True

    def run(self, pre_run=None):
        """Run the application; `pre_run` is called once the event loop is running"""
        self.app.run(pre_run=pre_run)
