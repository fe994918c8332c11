"""
User handlers — login shell and supplementary group membership.
"""

from __future__ import annotations

from src.adapters.base import ApplyContext, StepHandler
from src.core.errors import ApplyError
from src.core.models.facts import FactQuery, HostFacts
from src.core.models.step import GroupTarget, LoginShellTarget, Step, StepKind


class LoginShellSetHandler(StepHandler):
    """Set a user's login shell with ``chsh``.

    The target shell may be a name (``zsh``) or a path; a name is
    resolved on PATH at check time. Paths are compared after resolving
    symlinks, so /bin/zsh and /usr/bin/zsh are the same shell.
    """

    @property
    def kind(self) -> StepKind:
        return StepKind.LOGIN_SHELL_SET

    def facts_needed(self, step: Step) -> FactQuery:
        target: LoginShellTarget = step.target
        return FactQuery(shells=(target.user,), binaries=(target.shell,))

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: LoginShellTarget = step.target
        return facts.same_file(facts.login_shell(target.user), facts.binary(target.shell))

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: LoginShellTarget = step.target
        shell_path = ctx.facts.binary(target.shell)
        if not shell_path:
            raise ApplyError(f"shell {target.shell!r} is not installed")
        ctx.run(["chsh", "-s", shell_path, target.user], privileged=True)
        return f"login shell of {target.user} set to {shell_path}"

    def describe(self, step: Step) -> str:
        target: LoginShellTarget = step.target
        return step.description or f"set login shell of {target.user} to {target.shell}"


class GroupMemberHandler(StepHandler):
    """Add a user to a supplementary group with ``usermod -aG``.

    Membership takes effect at the user's next login.
    """

    @property
    def kind(self) -> StepKind:
        return StepKind.GROUP_MEMBER

    def facts_needed(self, step: Step) -> FactQuery:
        target: GroupTarget = step.target
        return FactQuery(groups=(target.user,))

    def check(self, step: Step, facts: HostFacts) -> bool:
        target: GroupTarget = step.target
        return facts.in_group(target.user, target.group)

    def apply(self, step: Step, ctx: ApplyContext) -> str:
        target: GroupTarget = step.target
        ctx.run(["usermod", "-aG", target.group, target.user], privileged=True)
        return f"added {target.user} to {target.group} (effective at next login)"

    def describe(self, step: Step) -> str:
        target: GroupTarget = step.target
        return step.description or f"add {target.user} to group {target.group}"
