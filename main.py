"""SM64 Decomp Level Editor: object inspection from the command line.

Launch with: python main.py PROJECT_ROOT [LEVEL] [--area N]
"""

import argparse
import logging
import sys

from sm64editor.level_project import LevelProject
from sm64editor.settings import EditorSettings


def _format_object(index, obj) -> str:
    name = obj.display_name()
    x, y, z = obj.position
    loc = obj.location
    where = f"{loc.file}:{loc.offset}+{loc.length}" if loc else "-"
    return (f"[{index}] {obj.source_type.value:<7} {name:<40} "
            f"pos=({x}, {y}, {z}) ry={obj.ry} params=0x{obj.params:08X} "
            f"bhv={obj.behavior}  {where}")


def main(argv=None):
    ap = argparse.ArgumentParser(description="List objects placed in an SM64 decomp level.")
    ap.add_argument("project_root", nargs="?", help="Decomp project folder (defaults to the last one used)")
    ap.add_argument("level", nargs="?", help="Level folder name under levels/, or a path")
    ap.add_argument("--area", type=int, default=None, help="Area index (default: every area)")
    ap.add_argument("--behaviors", action="store_true", help="List behavior names")
    ap.add_argument("--models", action="store_true", help="List model names")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    settings = EditorSettings.load()
    root = args.project_root or settings.last_project_root
    if not root:
        ap.error("project_root is required on first use")
    project = LevelProject(root, settings)
    settings.last_project_root = project.project_root
    settings.save()

    if args.behaviors:
        print("\n".join(project.resolve_behaviors()))
        return 0
    if args.models:
        print("\n".join(project.resolve_models(args.level)))
        return 0
    if not args.level:
        print("\n".join(project.list_levels()))
        return 0

    areas = [args.area] if args.area is not None else project.list_areas(args.level)
    for area in areas:
        objects = project.load_area(args.level, area)
        print(f"== {args.level} area {area}: {len(objects)} objects")
        for i, obj in enumerate(objects):
            print(_format_object(i, obj))
    return 0


if __name__ == "__main__":
    sys.exit(main())
