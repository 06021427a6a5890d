"""
cmdtree help and version rendering (rich).

What this module provides
- render_help(tree, path): usage line, description, a table of subcommands and
  the flags visible at path (split into the command's own flags and the
  inherited/global ones), written to the diagnostic stream.
- render_version(tree): "<name> <version>" on standard output.

Styling
- Palette keys: usage-label, program-name, usage-section, description-section,
  children-title, children-table, children, children-description,
  name-column, group-label, flag-name, metavar, choice, flag-description,
  flag-extra, program-version, panel-title.
- Host overrides are read from __main__.__styles__; colorful=False strips
  every style; fancy=True wraps the output in a panel.
- Hidden commands and flags are omitted.
"""
import sys
from collections import defaultdict
from datetime import timedelta

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .flags import Kind
from .parser import visible_flags
from .utils import *


def _palette(colorful):
    styles = defaultdict(str, {
        # ==== Usage / header ====
        "usage-label": "bold #FFD600",
        "program-name": "bold #FF4D94",
        "usage-section": "#E5E7EB",
        "description-section": "#C8C8D0",

        # ==== Children ====
        "children-title": "bold #36C5F0",
        "children-table": "#36C5F0 dim",
        "children": "bold #00E6FF",
        "children-description": "#E5E7EB",
        "name-column": "",

        # ==== Flags ====
        "group-label": "bold #FFD600",
        "flag-name": "bold #22C55E",
        "metavar": "italic #9CE19C",
        "choice": "#00E6FF",
        "flag-description": "#E5E7EB",
        "flag-extra": "#9CA3AF",

        # ==== Version ====
        "program-version": "bold #00E6FF",

        # ==== Panel ====
        "panel-title": "bold #FF4D94",
    } | getattr(sys.modules.get("__main__"), "__styles__", {}))

    def text(fragment, style=""):
        if isinstance(fragment, Text):
            return fragment.copy() if colorful else Text(fragment.plain)
        return Text(str(fragment) if fragment else "", styles[style] if colorful else "")

    return text


def _default(flag):
    """
    Printable default, or None when there is nothing worth showing.
    """
    value = flag.default
    if value is Unset or value is None or value == [] or flag.kind is Kind.BOOL:
        return None
    if isinstance(value, timedelta):
        return _duration(value)
    if isinstance(value, list):
        return ", ".join(value)
    return str(value)


def _duration(value):
    total = value.total_seconds()
    if not total:
        return "0s"
    hours, rest = divmod(abs(total), 3600)
    minutes, seconds = divmod(rest, 60)
    shown = ("%dh" % hours if hours else "") + ("%dm" % minutes if minutes else "")
    if seconds:
        shown += "%gs" % seconds if seconds >= 1 or shown else "%gms" % (seconds * 1000)
    return ("-" if total < 0 else "") + shown


def _usage(tree, path, text):
    node = path[-1] if path else tree.root
    usage = Text()
    usage.append(text("usage", "usage-label")).append(": ")
    usage.append(text(" ".join((tree.name, *(step.name for step in path))), "program-name"))
    sections = ["[flags]"]
    if any(not child.hidden for child in node.children.values()):
        sections.append("<command>" if not node.invocable else "[<command>]")
    if node is not tree.root and node.invocable:
        sections.append("[<args>...]")
    usage.append(" ").append(text(" ".join(sections), "usage-section"))
    return usage


def _flags(label, flags, text, console, width):
    section = Text()
    section.append(text(label, "group-label")).append(":\n")
    padding = 2
    indent = 28
    for flag in flags:
        names = Text(", ").join(
            text(spelling, "flag-name")
            for spelling in sorted((*flag.spellings, *filter(None, [flag.negation])), key=len)
        )
        line = Text(" " * padding).append(names)
        if flag.takes_value:
            line.append(" ").append(text(flag.label, "choice" if flag.kind is Kind.ENUM and not flag.metavar else "metavar"))
        if flag.repeatable:
            line.append(text(" ...", "metavar"))

        extras = []
        if flag.required:
            extras.append("required")
        if (default := _default(flag)) is not None:
            extras.append("default: %s" % default)
        if flag.envar:
            extras.append("env: $%s" % flag.envar)

        descr = Text()
        if flag.descr:
            descr.append(text(flag.descr, "flag-description"))
        if extras:
            descr.append(" " if flag.descr else "").append(text("(%s)" % "; ".join(extras), "flag-extra"))

        if descr:
            if len(line) >= indent - 1:
                line.append("\n").append(" " * indent)
            else:
                line.append(" " * (indent - len(line)))
            wrapped = descr.wrap(console, max(width - indent, 20))
            for index, segment in enumerate(wrapped):
                if index:
                    line.append("\n").append(" " * indent)
                line.append(segment)
        section.append(line).append("\n")
    return section


def render_help(tree, path=(), /, *, console=Unset, colorful=True, fancy=False):
    """
    Print the help listing for the node at path (a tuple of nodes, root excluded).
    """
    console = Console(stderr=True) if console is Unset else console
    text = _palette(colorful)
    width = console.width - 4 * bool(fancy)
    node = path[-1] if path else tree.root

    renders = [_usage(tree, path, text).append("\n")]

    if node.descr:
        renders.append(text(node.descr, "description-section").append("\n"))

    if children := {name: child for name, child in node.children.items() if not child.hidden}:
        table = Table(
            "name", "help",
            title=text("subcommands" if path else "commands", "children-title"),
            width=int(width * (2 / 3)),
            box=ROUNDED,
            style=text("", "children-table").style,
            header_style=text("", "children-title").style,
        )
        for name, child in children.items():
            label = text(name, "children")
            if child.aliases:
                label.append(text(" (%s)" % ", ".join(child.aliases), "children-description"))
            if child.descr:
                descr = text(child.descr, "children-description")
            else:
                route = " ".join((tree.name, *(step.name for step in path), name))
                descr = text("run '%s --help' for details" % route, "flag-extra")
            table.add_row(label, descr, style=text("", "name-column").style)
        renders.append(table)

    visible = [flag for flag in dict.fromkeys(visible_flags(tree, path).values()) if not flag.hidden]
    own = [flag for flag in visible if any(flag is mine for mine in node.flags)]
    inherited = [flag for flag in visible if not any(flag is mine for mine in node.flags)]
    groups = Text("\n" if children else "")
    if own:
        groups.append(_flags("flags", own, text, console, width))
    if inherited:
        groups.append("\n" if own else "").append(_flags("global flags", inherited, text, console, width))
    if groups.plain.strip():
        renders.append(groups)

    if isinstance(renders[-1], Text):
        renders[-1].rstrip()
    renderable = Group(*renders)
    if fancy:
        renderable = Panel(
            renderable,
            title=text("[ %s HELP ]" % " ".join((tree.name, *(step.name for step in path))).upper(), "panel-title"),
            title_align="left",
        )
    console.print(renderable)


def render_version(tree, /, *, console=Unset, colorful=True, fancy=False):
    """
    Print "<name> <version>" on standard output.
    """
    console = Console() if console is Unset else console
    text = _palette(colorful)
    renderable = Text(" ").join((text(tree.name, "program-name"), text(tree.version, "program-version")))
    if fancy:
        renderable = Panel(renderable, title=text("[ VERSION ]", "panel-title"), title_align="left", expand=False)
    console.print(renderable)


__all__ = (
    "render_help",
    "render_version",
)
