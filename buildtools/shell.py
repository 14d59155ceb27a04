import cmd
import shlex

from buildtools.errors import EnhancedBuildsError
from buildtools.panel import EditorPanel
from buildtools.panel import WINDOW_TITLE

class PanelShell(cmd.Cmd):
    """Interactive session on an EditorPanel. Changes are saved after every command; undo/redo work for the whole session."""

    intro = f"{WINDOW_TITLE}. Type `help` for commands, `quit` to leave."
    prompt = "(builds) "

    def __init__(self, panel: EditorPanel, make_builder, stdin = None, stdout = None):
        super().__init__(stdin = stdin, stdout = stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.panel = panel
        self.make_builder = make_builder

    def say(self, text: str = "") -> None:
        self.stdout.write(text + "\n")

    def onecmd(self, line):
        try:
            return super().onecmd(line)
        except (EnhancedBuildsError, ValueError, IndexError) as e:
            self.say(f"error: {e}")
            return False

    def postcmd(self, stop, line):
        if self.panel.save():
            self.say(f"saved {self.panel.path}")
        return stop

    def emptyline(self):
        return False

    def args(self, line: str, count: int):
        parts = shlex.split(line)
        if len(parts) < count:
            raise ValueError(f"expected {count} arguments, got {len(parts)}")
        return parts

    def do_show(self, line):
        "show: draw the panel"
        for text in self.panel.render():
            self.say(text)

    def do_create(self, line):
        "create: make a new build setup and load it"
        self.say(f"created {self.panel.create_new()}")

    def do_select(self, line):
        "select PATH: load a build setup file from inside Assets/"
        path = self.args(line, 1)[0]
        if not self.panel.select_build_file(path):
            self.say(f"ignored {path}: not a build setup inside the project's Assets folder")

    def do_root(self, line):
        "root DIR: set the root output directory"
        path = self.args(line, 1)[0]
        self.panel.choose_root_directory(path)

    def do_abort(self, line):
        "abort on|off: stop the batch at the first failing build"
        value = self.args(line, 1)[0]
        self.panel.set_abort_on_failure(value)

    def do_add(self, line):
        "add: append a build entry"
        self.panel.add_entry()
        self.say(f"added entry {len(self.panel.setup.entries) - 1}")

    def do_remove(self, line):
        "remove I: delete build entry I"
        index = self.args(line, 1)[0]
        self.panel.remove_entry(int(index))

    def do_enable(self, line):
        "enable I: include entry I in builds"
        index = self.args(line, 1)[0]
        self.panel.toggle_enabled(int(index), True)

    def do_disable(self, line):
        "disable I: leave entry I out of builds"
        index = self.args(line, 1)[0]
        self.panel.toggle_enabled(int(index), False)

    def do_expand(self, line):
        "expand I [options|scenes|advanced|vr]: fold/unfold a section of entry I"
        parts = self.args(line, 1)
        self.panel.toggle_expanded(int(parts[0]), parts[1] if len(parts) > 1 else "options")

    def do_set(self, line):
        "set I FIELD VALUE: change a field of entry I"
        parts = self.args(line, 3)
        self.panel.set_field(int(parts[0]), parts[1], " ".join(parts[2:]))

    def do_addscene(self, line):
        "addscene I [PATH]: append a custom scene to entry I"
        parts = self.args(line, 1)
        self.panel.add_scene(int(parts[0]), parts[1] if len(parts) > 1 else "")

    def do_rmscene(self, line):
        "rmscene I S: remove custom scene S from entry I"
        index, scene = self.args(line, 2)[:2]
        self.panel.remove_scene(int(index), int(scene))

    def do_scene(self, line):
        "scene I S PATH: set custom scene S of entry I to a project-relative path"
        index, scene, path = self.args(line, 3)[:3]
        self.panel.set_scene(int(index), int(scene), path)

    def do_pickscene(self, line):
        "pickscene I S FILE: set custom scene S of entry I from a file on disk (must be inside Assets/)"
        index, scene, path = self.args(line, 3)[:3]
        if not self.panel.select_scene(int(index), int(scene), path):
            self.say(f"ignored {path}: not inside the project's Assets folder")

    def do_library(self, line):
        "library: print where the current build setup file lives"
        self.say(str(self.panel.show_in_library()))

    def do_undo(self, line):
        "undo: revert the last change"
        label = self.panel.undo()
        self.say(f"undid {label}" if label else "nothing to undo")

    def do_redo(self, line):
        "redo: reapply the last undone change"
        label = self.panel.redo()
        self.say(f"redid {label}" if label else "nothing to redo")

    def do_build(self, line):
        "build: run every enabled entry"
        report = self.panel.build(self.make_builder(self.panel.current()))
        self.say(f"{report.attempted() - len(report.failures())} of {report.attempted()} builds succeeded")

    def do_quit(self, line):
        "quit: leave the shell"
        return True

    do_EOF = do_quit
