"""Stage gates: map a target editorial stage to the checks it requires."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .config import STAGE_RANK, STAGES, Project
from .errors import StegoError
from .manuscript.inspector import inspect_project
from .models import Document, Issue, error
from .tooling import catalog_words, run_cspell, run_markdownlint

UNRESOLVED_PREVIEW = 5


@dataclass
class StageReport:
    stage: str
    documents: list[Document] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)


def unresolved_comment_issue(document: Document, stage: str) -> Issue | None:
    open_threads = document.open_comments
    if not open_threads:
        return None
    label = ", ".join(thread.id for thread in open_threads[:UNRESOLVED_PREVIEW])
    remainder = len(open_threads) - UNRESOLVED_PREVIEW
    suffix = f" (+{remainder} more)" if remainder > 0 else ""
    return error(
        "comments",
        f"Unresolved comments ({len(open_threads)}): {label}{suffix}. "
        f"Resolve or clear comments before stage '{stage}'.",
        document.relative_path,
    )


def run_stage_check(
    project: Project,
    stage: str,
    only_file: str | None = None,
    *,
    external_tools: bool = True,
) -> StageReport:
    """Inspect a project and apply the policy for ``stage``."""
    if stage not in STAGE_RANK:
        raise StegoError(f"Unknown stage '{stage}'. Allowed: {', '.join(STAGES)}.")
    policy = project.config.stage_policies[stage]

    inspection = inspect_project(project, only_file=only_file)
    issues = list(inspection.issues)
    minimum = STAGE_RANK[policy.minimum_status]

    for document in inspection.documents:
        rank = STAGE_RANK.get(document.status)
        if rank is None:
            continue

        if rank < minimum:
            issues.append(
                error(
                    "stage",
                    f"File status '{document.status}' is below required stage '{policy.minimum_status}'.",
                    document.relative_path,
                )
            )

        if stage == "final" and document.status != "final":
            issues.append(
                error("stage", "Final stage requires all chapters to be status 'final'.", document.relative_path)
            )

        if policy.require_resolved_comments:
            unresolved = unresolved_comment_issue(document, stage)
            if unresolved is not None:
                issues.append(unresolved)

    if policy.require_spine:
        issues.extend(
            replace(issue, level="error")
            for issue in inspection.issues
            if issue.category == "continuity" and issue.message.startswith("Missing spine file")
        )

    if policy.enforce_local_links:
        issues = [
            replace(issue, level="error", message=f"{issue.message} (strict in stage '{stage}')")
            if issue.category == "links" and issue.level != "error"
            else issue
            for issue in issues
        ]

    if external_tools:
        paths = [document.path for document in inspection.documents]
        issues.extend(run_markdownlint(project, paths, policy.enforce_markdownlint))
        issues.extend(run_cspell(project, paths, policy.enforce_cspell, catalog_words(inspection.catalog.ids)))

    return StageReport(stage=stage, documents=inspection.documents, issues=issues)
