"""Per-file applied-change counters for display."""

from refactor_engine.models import ProjectFile


def annotate_change_counts(
    files: list[ProjectFile],
    touched_files: list[str] | set[str],
) -> list[ProjectFile]:
    """Bump ``changes_count`` by one for every touched file.

    One increment per batch, however many patches the file received.
    Returns new file objects; untouched files are passed through as-is.
    """
    touched = set(touched_files)
    counted: set[str] = set()
    annotated: list[ProjectFile] = []
    for project_file in files:
        if project_file.name in touched and project_file.name not in counted:
            annotated.append(
                project_file.model_copy(
                    update={"changes_count": project_file.changes_count + 1}
                )
            )
            counted.add(project_file.name)
        else:
            annotated.append(project_file)
    return annotated
