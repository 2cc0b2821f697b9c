import logging
from typing import Dict, Optional

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, LoadingIndicator, Markdown, Tree

from pinguard.__version__ import __version__
from pinguard.core.audit import AuditReport, resolve, run_audit
from pinguard.core.config import load_policy
from pinguard.core.matcher import ArtifactExclusionMatcher
from pinguard.core.model import DependencyNode, PolicyConfig, Violation
from pinguard.managers import detect_manager
from pinguard.managers.base import PackageManager

# Log Configuration
logging.basicConfig(
    filename="debug.log",
    level=logging.DEBUG,
    filemode="w",
    format="%(asctime)s - %(levelname)s - %(message)s",
)

RULE_HINTS = {
    "latest": "`LATEST` resolves to the newest version in the repository, builds are not reproducible.",
    "release": "`RELEASE` resolves to the newest release in the repository, builds are not reproducible.",
    "snapshot": "`-SNAPSHOT` versions can be redeployed at any time.",
    "range": "Ranges resolve to different versions as new releases appear.",
    "single-point range": "Even a single-point range is resolved through the repository metadata.",
}


def build_violation_markdown(violation: Violation) -> str:
    node = violation.node
    lines = [f"# (X) {node.artifact.group}:{node.artifact.name}\n"]
    lines.append(f"**Banned dynamic version `{violation.constraint}`** ({violation.reason})\n")

    hint = RULE_HINTS.get(violation.reason)
    if hint:
        lines.append(f"{hint}\n")

    lines.append("### Details\n")
    lines.append(f"- **Coordinate**: `{node.artifact}`")
    lines.append(f"- **Scope**: {node.scope or 'compile'}")
    if node.optional:
        lines.append("- **Optional**: yes")

    lines.append("\n### Path\n")
    if violation.path:
        for depth, ancestor in enumerate(violation.path):
            lines.append(f"{'  ' * depth}- `{ancestor.artifact}`")
        lines.append(f"{'  ' * len(violation.path)}- **`{node.artifact}`**")
    else:
        lines.append("_Direct dependency of the project._")

    return "\n".join(lines)


class ViolationScreen(ModalScreen):
    """Modal to display the details of a banned dynamic version."""

    DEFAULT_CSS = """
    ViolationScreen {
        align: center middle;
        background: rgba(0, 0, 0, 0.8);
    }
    #dialog {
        padding: 0 1;
        width: 85%;
        height: 85%;
        border: heavy $error;
        background: $surface;
        layout: vertical;
    }
    #title {
        text-align: center;
        text-style: bold;
        background: $error;
        color: white;
        width: 100%;
        padding: 1;
    }
    #content-scroll {
        height: 1fr;
        margin: 1 0;
        overflow-y: auto;
    }
    #close-btn {
        width: 100%;
        dock: bottom;
    }
    """

    def __init__(self, violation: Violation) -> None:
        super().__init__()
        self.violation = violation

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"[!] {escape(str(self.violation.node.artifact))}", id="title"),
            VerticalScroll(
                Markdown(build_violation_markdown(self.violation)),
                id="content-scroll"
            ),
            Button("Close (Esc)", variant="error", id="close-btn"),
            id="dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def key_escape(self) -> None:
        self.dismiss()


class PinguardApp(App):
    TITLE = "Pinguard"
    SUB_TITLE = f"v{__version__}"

    DEFAULT_CSS = """
    Screen { layout: vertical; }

    #info-bar {
        height: 3;
        dock: top;
        background: $surface;
        border-bottom: solid $primary;
        align: left middle;
        padding: 0 1;
    }

    .info-label {
        width: auto;
        height: 1;
        padding: 0 2;
        color: $text;
    }

    #tree-container {
        height: 1fr;
        margin: 0 1;
    }
    Tree { padding: 1; background: $surface; }

    #loading-container { height: 100%; align: center middle; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("d", "toggle_filter", "Dynamic Only"),
    ]

    show_only_dynamic: bool = False
    total_deps: int = 0
    dynamic_deps: int = 0
    manager_name: str = "..."

    def __init__(self, policy: Optional[PolicyConfig] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.policy = policy
        self.violations: Dict[int, Violation] = {}

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        with Horizontal(id="info-bar"):
            yield Label(f"[b]Context:[/b] [cyan]{self.manager_name}[/]", id="lbl-context", classes="info-label")
            yield Label(f"[b]Total:[/b] [blue]{self.total_deps}[/]", id="lbl-total", classes="info-label")
            yield Label(f"[b]Dynamic:[/b] [red]{self.dynamic_deps}[/]", id="lbl-dynamic", classes="info-label")
            yield Label("[b]Pinned:[/b] [green]0[/]", id="lbl-pinned", classes="info-label")

        with Container(id="main-area"):
            with Container(id="loading-container"):
                yield LoadingIndicator()
                yield Label("Initializing Pinguard...", id="status-label")

            with Container(id="tree-container"):
                yield Tree("Root", id="dep-tree")

        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#tree-container").display = False
        self.audit_dependencies()

    # --- ACTIONS ---

    def action_cursor_down(self) -> None:
        self.query_one("#dep-tree").action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#dep-tree").action_cursor_up()

    def action_expand_node(self) -> None:
        tree = self.query_one("#dep-tree")
        if tree.cursor_node:
            tree.cursor_node.expand()

    def action_collapse_node(self) -> None:
        tree = self.query_one("#dep-tree")
        node = tree.cursor_node
        if node:
            if node.is_expanded:
                node.collapse()
            elif node.parent:
                tree.select_node(node.parent)
                node.parent.collapse()

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        node_data = event.node.data
        violation = self.violations.get(id(node_data)) if node_data is not None else None
        if violation:
            self.push_screen(ViolationScreen(violation))
        else:
            self.notify("This dependency is pinned.", severity="information")

    def action_toggle_filter(self) -> None:
        self.show_only_dynamic = not self.show_only_dynamic

        status = "enabled" if self.show_only_dynamic else "disabled"
        severity = "warning" if self.show_only_dynamic else "information"
        msg = "Showing dynamic versions only." if self.show_only_dynamic else "Showing all dependencies."

        self.notify(f"Filter {status}: {msg}", severity=severity)

        root_data = self.query_one("#dep-tree").root.data
        if root_data:
            self.render_tree(root_data)

    # --- LOGIC ---

    def _has_dynamic_descendant(self, node: DependencyNode) -> bool:
        if id(node) in self.violations:
            return True
        for child in node.children:
            if self._has_dynamic_descendant(child):
                return True
        return False

    @staticmethod
    def _count(node: DependencyNode) -> int:
        return sum(1 + PinguardApp._count(child) for child in node.children)

    def update_status(self, msg: str) -> None:
        self.query_one("#status-label", Label).update(msg)

    def update_dashboard_ui(self) -> None:
        pinned_count = self.total_deps - self.dynamic_deps
        self.query_one("#lbl-context", Label).update(f"[b]Context:[/b] [cyan]{escape(self.manager_name)}[/]")
        self.query_one("#lbl-total", Label).update(f"[b]Total:[/b] [blue]{self.total_deps}[/]")
        self.query_one("#lbl-dynamic", Label).update(f"[b]Dynamic:[/b] [red]{self.dynamic_deps}[/]")
        self.query_one("#lbl-pinned", Label).update(f"[b]Pinned:[/b] [green]{pinned_count}[/]")

    def show_error(self, message: str) -> None:
        self.query_one("#status-label", Label).update(f"[bold red]Fatal Error:[/]\n{escape(message)}")
        self.query_one("LoadingIndicator").display = False

    @work(thread=False)
    async def audit_dependencies(self) -> None:
        try:
            logging.info("Worker started.")
            self.update_status("Detecting project...")

            manager = detect_manager()
            if not manager:
                raise Exception("No supported project found.")

            self.manager_name = manager.name
            self.update_dashboard_ui()

            logging.info(f"Manager: {manager.name}")
            self.update_status(f"Resolving dependencies ({manager.name})...")

            policy = self.policy or load_policy()
            root_node = self._resolve_and_audit(manager, policy)
            self.render_tree(root_node)

        except Exception as e:
            logging.exception("Fatal error in worker:")
            self.show_error(str(e))

    def _resolve_and_audit(self, manager: PackageManager, policy: PolicyConfig) -> DependencyNode:
        policy.validate()
        matcher = ArtifactExclusionMatcher(policy.ignores)
        root_node = resolve(manager, policy)
        report: AuditReport = run_audit(root_node, policy, matcher)

        self.violations = {id(v.node): v for v in report.violations}
        self.total_deps = self._count(root_node)
        self.dynamic_deps = report.count
        self.update_dashboard_ui()
        return root_node

    def render_tree(self, root_node: DependencyNode) -> None:
        tree = self.query_one("#dep-tree")
        tree.clear()
        tree.root.data = root_node
        tree.root.label = f"📂 {escape(str(root_node.artifact))}"
        tree.root.expand()

        def add_nodes(tree_node, data_node):
            for child in data_node.children:
                if self.show_only_dynamic and not self._has_dynamic_descendant(child):
                    continue

                safe_name = escape(f"{child.artifact.group}:{child.artifact.name}")
                safe_ver = escape(str(child.constraint))

                child_count = len(child.children)
                count_suffix = f" [dim]↳[/] {child_count}" if child_count > 0 else ""

                violation = self.violations.get(id(child))
                if violation:
                    label = f"[bold red](!) {safe_name}[/] [dim]{safe_ver}[/] [red]({escape(violation.reason)})[/]{count_suffix}"
                elif not child.constraint.raw:
                    label = f"[blue](-) {safe_name}[/]{count_suffix}"
                else:
                    label = f"[green](•) {safe_name} [dim]{safe_ver}[/]{count_suffix}"

                new_node = tree_node.add(label, expand=child.expanded, data=child)
                if self.show_only_dynamic:
                    new_node.expand()

                add_nodes(new_node, child)

        add_nodes(tree.root, root_node)
        self.query_one("#loading-container").display = False
        self.query_one("#tree-container").display = True
        tree.focus()
