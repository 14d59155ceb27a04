import argparse
import os
import sys

from typing import List
from typing import Optional

from buildtools import store
from buildtools import unity
from buildtools.config import Settings
from buildtools.config import load_settings
from buildtools.errors import EnhancedBuildsError
from buildtools.model import BuildTarget
from buildtools.panel import EditorPanel
from buildtools.panel import parse_enum
from buildtools.process import BuildProcess
from buildtools.process import load_report
from buildtools.shell import PanelShell
from buildutil.prof import prof

def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog = "enhancedbuilds",
        description = "Configure and run batches of Unity player builds.")
    parser.add_argument("--project", help="Unity project directory (defaults to the current directory)", default=".")
    parser.add_argument("--config", help="Settings file (defaults to config/enhancedbuilds.json inside the project)")

    commands = parser.add_subparsers(dest = "command", required = True)

    commands.add_parser("show", help="Draw the build setup panel")
    commands.add_parser("create", help="Create a new build setup and make it current")

    select = commands.add_parser("select", help="Make an existing build setup current")
    select.add_argument("path", help="Build setup file; must be inside the project's Assets folder")

    root = commands.add_parser("root", help="Set the root output directory")
    root.add_argument("directory")

    abort = commands.add_parser("abort-on-failure", help="Stop the batch at the first failing build")
    abort.add_argument("value", choices=["on", "off"])

    add = commands.add_parser("add-entry", help="Append a build entry")
    add.add_argument("--name", help="Build name")
    add.add_argument("--target", help="Build target (e.g. StandaloneWindows64, Android, iOS)")

    remove = commands.add_parser("remove-entry", help="Delete a build entry")
    remove.add_argument("index", type=int)

    enable = commands.add_parser("enable", help="Include an entry in builds")
    enable.add_argument("index", type=int)

    disable = commands.add_parser("disable", help="Leave an entry out of builds")
    disable.add_argument("index", type=int)

    expand = commands.add_parser("expand", help="Fold or unfold a section of an entry in `show`")
    expand.add_argument("index", type=int)
    expand.add_argument("section", nargs="?", default="options", choices=["options", "scenes", "advanced", "vr"])

    setfield = commands.add_parser("set", help="Change a field of an entry")
    setfield.add_argument("index", type=int)
    setfield.add_argument("field")
    setfield.add_argument("value")

    addscene = commands.add_parser("add-scene", help="Append a custom scene to an entry")
    addscene.add_argument("index", type=int)
    addscene.add_argument("path", nargs="?", help="Scene file; absolute paths must be inside the project's Assets folder")

    removescene = commands.add_parser("remove-scene", help="Remove a custom scene from an entry")
    removescene.add_argument("index", type=int)
    removescene.add_argument("scene", type=int)

    setscene = commands.add_parser("set-scene", help="Replace a custom scene of an entry")
    setscene.add_argument("index", type=int)
    setscene.add_argument("scene", type=int)
    setscene.add_argument("path", help="Scene file; absolute paths must be inside the project's Assets folder")

    build = commands.add_parser("build", help="Build every enabled entry")
    build.add_argument("--dry-run", help="Print what would be built without starting Unity", action="store_true")
    build.add_argument("--container", help="Build inside this docker image instead of with a local editor")
    build.add_argument("--memory", help="Maximum memory for container builds (in gigabytes)", type=int)
    build.add_argument("--publish", help="Upload successful builds to the configured S3 bucket", action="store_true")

    commands.add_parser("show-in-library", help="Print the path of the current build setup file")
    commands.add_parser("report", help="Summarize the last batch")
    commands.add_parser("shell", help="Interactive session with undo/redo")
    commands.add_parser("install-receiver", help="Copy the editor-side build script into the project")

    return parser

def make_builder(project: store.Project, settings: Settings, setup, container: Optional[str] = None, memory: Optional[int] = None):
    image = container or settings.container_image
    if image:
        from buildutil.container import ContainerBuilder
        return ContainerBuilder(project, image, setup.root_directory, memory_limit = memory)
    return unity.UnityBuilder(project, settings.unity_path)

@prof
def build(args, panel: EditorPanel, project: store.Project, settings: Settings) -> int:
    setup = panel.current()
    if args.dry_run:
        if not setup.is_ready():
            print("Define a Root directory and at least one active build entry")
            return 1
        for request in BuildProcess(project, None).requests(setup):
            print(f"{request.name}: {request.target.value} -> {request.location}")
            print(f"  scenes: {', '.join(request.scenes) or '(none)'}")
            print(f"  defines: {';'.join(request.define_symbols)}")
            print(f"  options: {int(request.options)}")
        return 0

    report = panel.build(make_builder(project, settings, setup, args.container, args.memory))

    if args.publish:
        from buildutil.s3 import Publisher
        Publisher(settings.s3_bucket, settings.aws_access_key_id, settings.aws_secret_access_key).publish(report)

    return 0 if report.success() else 1

def report(panel: EditorPanel) -> int:
    last = load_report(panel.current().root_directory)
    print(f"Batch {last.batch_id}")
    if last.started and last.finished:
        print(f"  {last.started.isoformat()} -> {last.finished.isoformat()} ({(last.finished - last.started).total_seconds():0.1f}s)")
    for result in last.results:
        duration = result.duration()
        took = f" in {duration.total_seconds():0.1f}s" if duration is not None else ""
        print(f"  {'ok  ' if result.success else 'FAIL'} {result.name}{took}")
        if result.message:
            for line in result.message.splitlines():
                print(f"       {line}")
    if last.aborted:
        print("  (batch aborted after the first failure)")
    return 0 if last.success() else 1

def run(args, panel: EditorPanel, project: store.Project, settings: Settings) -> int:
    command = args.command

    if command == "create":
        panel.create_new()
        return 0
    if command == "select":
        if not panel.select_build_file(args.path):
            print(f"Ignored {args.path}: not a build setup inside {project.data_path}")
            return 1
        return 0
    if command == "install-receiver":
        unity.install_receiver(project)
        return 0

    panel.open()

    if command == "show":
        print("\n".join(panel.render()))
    elif command == "shell":
        PanelShell(panel, lambda setup: make_builder(project, settings, setup)).cmdloop()
    elif command == "root":
        panel.choose_root_directory(args.directory)
    elif command == "abort-on-failure":
        panel.set_abort_on_failure(args.value)
    elif command == "add-entry":
        target = parse_enum(BuildTarget, args.target) if args.target is not None else None
        panel.add_entry()
        index = len(panel.setup.entries) - 1
        if args.name is not None:
            panel.set_field(index, "build_name", args.name)
        if target is not None:
            panel.set_field(index, "target", target)
        print(f"Added entry {index}")
    elif command == "remove-entry":
        panel.remove_entry(args.index)
    elif command == "enable":
        panel.toggle_enabled(args.index, True)
    elif command == "disable":
        panel.toggle_enabled(args.index, False)
    elif command == "expand":
        panel.toggle_expanded(args.index, args.section)
    elif command == "set":
        panel.set_field(args.index, args.field, args.value)
    elif command == "add-scene":
        path = args.path or ""
        if os.path.isabs(path):
            path = project.relative(path)
            if path is None:
                print(f"Ignored {args.path}: not inside {project.data_path}")
                return 1
        panel.add_scene(args.index, path)
    elif command == "remove-scene":
        panel.remove_scene(args.index, args.scene)
    elif command == "set-scene":
        if os.path.isabs(args.path):
            if not panel.select_scene(args.index, args.scene, args.path):
                print(f"Ignored {args.path}: not inside {project.data_path}")
                return 1
        else:
            panel.set_scene(args.index, args.scene, args.path)
    elif command == "build":
        return build(args, panel, project, settings)
    elif command == "show-in-library":
        print(panel.show_in_library())
    elif command == "report":
        return report(panel)
    else:
        raise Exception(f"no handler for `{command}`?")

    return 0

def main(argv: Optional[List[str]] = None) -> int:
    args = make_parser().parse_args(argv)

    project = store.Project(args.project)
    if not project.data_path.is_dir():
        print(f"{project.root} doesn't look like a Unity project (no Assets folder)", file=sys.stderr)
        return 2

    settings = load_settings(project, args.config)
    panel = EditorPanel(project, store.Prefs(settings.prefs_file(project)), settings.setups_directory)

    try:
        status = run(args, panel, project, settings)
    except (EnhancedBuildsError, ValueError, IndexError) as e:
        print(f"error: {e}", file=sys.stderr)
        status = 1
    finally:
        if panel.save():
            print(f"Saved {panel.path}")

    return status

if __name__ == "__main__":
    sys.exit(main())
