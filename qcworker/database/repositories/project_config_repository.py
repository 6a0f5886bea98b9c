from qcworker.database.connection import get_connection
from qcworker.database.models import ProjectConfig


class ProjectConfigRepository:
    """Reads field and section definitions that drive counting and diffing."""

    def find(self, project_id: str) -> ProjectConfig:
        """Load the project's excluded fields and multi-row sections.

        Both lists are empty when the project has no definitions.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT field_name
                    FROM field_configurations
                    WHERE project_id = %s AND is_report_count = FALSE
                    ORDER BY field_name
                    """,
                    (project_id,),
                )
                fields = [row[0] for row in cur.fetchall()]
                cur.execute(
                    """
                    SELECT DISTINCT name
                    FROM section_definitions
                    WHERE project_id = %s AND is_multiple = TRUE
                    ORDER BY name
                    """,
                    (project_id,),
                )
                sections = [row[0] for row in cur.fetchall()]

        return ProjectConfig(
            project_id=project_id,
            fields_not_counted=fields,
            multi_row_sections=sections,
        )
