"""BibleOS tenant table catalogue.

Foreign keys mirror the production database.  Only references that
matter for ordering (parents inside this catalogue) are declared; the
delete/insert order is derived by ``TenantSchema``.

Tables without a ``company_id`` column are scoped either through another
tenant column (coaching tables use ``client_company_id``) or through
their parent rows (``scope_parent``).  Tables that cannot be attributed
to one tenant are listed but never read.
"""

from bibleos_ops.backup.models import ForeignKey, TableDef, TenantSchema


def _fk(table: str, field: str) -> ForeignKey:
    return ForeignKey(table=table, field=field)


def _child(name: str, parent: str, field: str, **kwargs) -> TableDef:
    """Table scoped through its parent's rows (no tenant column)."""
    return TableDef(name=name, tenant_column=None, scope_parent=_fk(parent, field), **kwargs)


TENANT_SCHEMA = TenantSchema(
    tables=[
        # Core
        TableDef(name="companies", tenant_root=True, tenant_column=None, restorable=False),
        TableDef(name="employees"),
        TableDef(name="groups"),
        _child("group_members", "groups", "group_id", pk=["group_id", "user_id"]),
        TableDef(name="locations"),
        _child("location_members", "locations", "location_id", pk=["location_id", "user_id"]),
        TableDef(
            name="memberships",
            parents=[_fk("employees", "employee_id"), _fk("locations", "default_location_id")],
            restorable=False,
        ),
        # Modules
        TableDef(name="company_modules"),
        TableDef(name="company_capability_settings", pk=["company_id"]),
        TableDef(name="company_terminology"),
        TableDef(
            name="company_frameworks",
            pk=["company_id"],
            parents=[_fk("frameworks", "active_framework_id")],
        ),
        # Work
        TableDef(name="folders", parents=[_fk("folders", "parent_folder_id")]),
        TableDef(name="folder_acl", parents=[_fk("folders", "folder_id")]),
        TableDef(name="projects", sample_flag=True),
        TableDef(name="project_phases", sample_flag=True, parents=[_fk("projects", "project_id")]),
        _child("project_members", "projects", "project_id", pk=["project_id", "user_id"]),
        TableDef(name="task_lists", sample_flag=True),
        TableDef(
            name="notes",
            sample_flag=True,
            parents=[_fk("folders", "folder_id"), _fk("projects", "project_id")],
        ),
        TableDef(
            name="tasks",
            sample_flag=True,
            parents=[
                _fk("notes", "linked_note_id"),
                _fk("task_lists", "list_id"),
                _fk("project_phases", "phase_id"),
                _fk("projects", "project_id"),
            ],
        ),
        _child("task_assignees", "tasks", "task_id", pk=["task_id", "user_id"]),
        TableDef(
            name="documents",
            parents=[_fk("folders", "folder_id"), _fk("projects", "project_id")],
        ),
        TableDef(
            name="events",
            parents=[
                _fk("notes", "linked_note_id"),
                _fk("tasks", "linked_task_id"),
                _fk("projects", "project_id"),
            ],
        ),
        _child("event_attendees", "events", "event_id", pk=["event_id", "user_id"]),
        # CRM & Sales
        TableDef(name="external_contacts"),
        TableDef(
            name="crm_clients",
            sample_flag=True,
            parents=[_fk("external_contacts", "external_contact_id")],
        ),
        TableDef(name="sales_pipelines"),
        _child("sales_pipeline_stages", "sales_pipelines", "pipeline_id"),
        TableDef(name="sales_campaigns"),
        TableDef(
            name="sales_opportunities",
            sample_flag=True,
            parents=[
                _fk("crm_clients", "crm_client_id"),
                _fk("sales_pipelines", "pipeline_id"),
                _fk("sales_campaigns", "source_campaign_id"),
                _fk("sales_pipeline_stages", "stage_id"),
            ],
        ),
        # Finance
        TableDef(name="invoices", sample_flag=True, parents=[_fk("crm_clients", "crm_client_id")]),
        TableDef(
            name="payments",
            parents=[_fk("crm_clients", "crm_client_id"), _fk("invoices", "invoice_id")],
        ),
        TableDef(name="receipts", sample_flag=True),
        # Donors
        TableDef(
            name="donor_profiles",
            sample_flag=True,
            parents=[_fk("crm_clients", "crm_client_id")],
        ),
        TableDef(name="donor_campaigns", sample_flag=True),
        TableDef(
            name="donor_pledges",
            parents=[_fk("donor_campaigns", "campaign_id"), _fk("donor_profiles", "donor_profile_id")],
        ),
        TableDef(
            name="donations",
            sample_flag=True,
            parents=[_fk("donor_campaigns", "campaign_id"), _fk("donor_profiles", "donor_profile_id")],
        ),
        # LMS
        TableDef(name="lms_courses", sample_flag=True),
        TableDef(name="lms_lessons"),
        _child(
            "lms_course_lessons", "lms_courses", "course_id",
            parents=[_fk("lms_lessons", "lesson_id")],
        ),
        TableDef(name="lms_learning_paths"),
        _child(
            "lms_path_courses", "lms_learning_paths", "path_id",
            parents=[_fk("lms_courses", "course_id")],
        ),
        TableDef(name="lms_assignments"),
        TableDef(name="lms_progress"),
        # Forms & Workflows
        TableDef(name="forms"),
        _child("form_fields", "forms", "form_id"),
        TableDef(name="wf_workflows", parents=[_fk("groups", "group_id")]),
        _child("wf_workflow_steps", "wf_workflows", "workflow_id"),
        TableDef(name="wf_forms", parents=[_fk("groups", "group_id")]),
        _child("wf_form_fields", "wf_forms", "form_id"),
        # Frameworks
        TableDef(name="frameworks", parents=[_fk("frameworks", "source_framework_id")]),
        _child("framework_concepts", "frameworks", "framework_id"),
        _child("framework_cadences", "frameworks", "framework_id"),
        _child("framework_health_metrics", "frameworks", "framework_id"),
        TableDef(name="framework_health_scores", parents=[_fk("frameworks", "framework_id")]),
        _child("framework_playbooks", "frameworks", "framework_id"),
        _child("framework_dashboards", "frameworks", "framework_id"),
        _child("framework_dashboard_sections", "framework_dashboards", "dashboard_id"),
        # Templates
        TableDef(name="templates"),
        TableDef(name="project_templates"),
        _child("project_template_phases", "project_templates", "template_id"),
        _child("project_template_tasks", "project_templates", "template_id"),
        # Coaching
        TableDef(name="coach_profiles", parents=[_fk("external_contacts", "external_contact_id")]),
        TableDef(name="coach_organizations", tenant_column="client_company_id"),
        TableDef(
            name="coaching_engagements",
            tenant_column="client_company_id",
            parents=[_fk("frameworks", "primary_framework_id")],
        ),
        TableDef(
            name="coaching_sessions",
            tenant_column="client_company_id",
            parents=[_fk("framework_playbooks", "playbook_id")],
        ),
        TableDef(
            name="coach_recommendations",
            tenant_column="target_company_id",
            parents=[_fk("coaching_engagements", "engagement_id")],
        ),
        # Support (knowledge base is per site, not per tenant)
        TableDef(name="kb_categories", tenant_column=None),
        TableDef(name="kb_articles", tenant_column=None, parents=[_fk("kb_categories", "category_id")]),
        TableDef(name="support_tickets"),
        # Links & Reports
        TableDef(name="entity_links"),
        TableDef(name="reports", sample_flag=True),
        TableDef(name="saved_views"),
    ]
)
