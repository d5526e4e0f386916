"""Tenant database schema and task-assignment webhook."""

import json

from outpost_core.observability import get_logger
from outpost_core.protocols.database_project import DatabaseProjectProvider
from outpost_core.utils.validation import sql_literal

logger = get_logger(__name__)

WEBHOOK_FUNCTION = "public._outpost_task_assignment_notify"
WEBHOOK_TRIGGER = "task-assignment-hook"

TENANT_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS public.agents (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL UNIQUE,
    role TEXT NOT NULL DEFAULT '',
    session_key TEXT NOT NULL DEFAULT '',
    is_lead BOOLEAN NOT NULL DEFAULT FALSE,
    status TEXT NOT NULL DEFAULT 'active',
    current_task UUID,
    last_seen_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS public.tasks (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    title TEXT NOT NULL DEFAULT '',
    description TEXT,
    status TEXT NOT NULL DEFAULT 'inbox',
    priority INT NOT NULL DEFAULT 5,
    created_by UUID REFERENCES public.agents(id),
    locked_by UUID REFERENCES public.agents(id),
    locked_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS public.task_messages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    task_id UUID NOT NULL REFERENCES public.tasks(id) ON DELETE CASCADE,
    from_agent UUID NOT NULL REFERENCES public.agents(id),
    content TEXT NOT NULL DEFAULT '',
    idempotency_key TEXT UNIQUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS public.task_documents (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    task_id UUID REFERENCES public.tasks(id) ON DELETE CASCADE,
    created_by UUID REFERENCES public.agents(id),
    title TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL DEFAULT '',
    version INT NOT NULL DEFAULT 1,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS public.task_status_history (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    task_id UUID NOT NULL REFERENCES public.tasks(id) ON DELETE CASCADE,
    from_status TEXT,
    to_status TEXT NOT NULL DEFAULT '',
    changed_by UUID REFERENCES public.agents(id),
    reason TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS public.task_assignees (
    task_id UUID NOT NULL REFERENCES public.tasks(id) ON DELETE CASCADE,
    agent_id UUID NOT NULL REFERENCES public.agents(id) ON DELETE CASCADE,
    assigned_at TIMESTAMPTZ DEFAULT NOW(),
    assigned_by UUID REFERENCES public.agents(id),
    PRIMARY KEY (task_id, agent_id)
);

CREATE TABLE IF NOT EXISTS public.agent_actions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    agent_id UUID NOT NULL REFERENCES public.agents(id) ON DELETE CASCADE,
    task_id UUID REFERENCES public.tasks(id) ON DELETE SET NULL,
    action TEXT NOT NULL DEFAULT '',
    meta JSONB DEFAULT '{}',
    idempotency_key TEXT UNIQUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);
""".strip()

LEAD_AGENT_SQL = """
INSERT INTO public.agents (name, role, session_key, is_lead)
VALUES ('Lead', 'Lead Coordinator', 'agent:main:main', TRUE)
ON CONFLICT (name) DO NOTHING;
""".strip()


def webhook_url(base_url: str, project_ref: str) -> str:
    """URL the task-assignment trigger posts to."""
    return f"{base_url.rstrip('/')}/webhooks/tasks/{project_ref}"


def render_webhook_function_sql(url: str, secret: str) -> str:
    """Render the pg_net trigger function posting new assignments to ``url``.

    The body is dollar-quoted, so values need only one level of
    single-quote escaping.
    """
    headers = json.dumps(
        {"Content-Type": "application/json", "Authorization": f"Bearer {secret}"},
        sort_keys=True,
    )
    return f"""
CREATE OR REPLACE FUNCTION {WEBHOOK_FUNCTION}()
RETURNS trigger
LANGUAGE plpgsql
AS $fn$
BEGIN
  PERFORM net.http_post(
    url := '{sql_literal(url)}',
    body := jsonb_build_object(
      'type', 'INSERT',
      'table', TG_TABLE_NAME,
      'record', to_jsonb(NEW),
      'schema', TG_TABLE_SCHEMA,
      'old_record', NULL::jsonb
    ),
    headers := '{sql_literal(headers)}'::jsonb,
    timeout_milliseconds := 5000
  );
  RETURN NEW;
END;
$fn$;
""".strip()


def render_webhook_trigger_sql() -> str:
    """Render the trigger attaching the notify function to task_assignees."""
    return (
        f'CREATE OR REPLACE TRIGGER "{WEBHOOK_TRIGGER}"\n'
        "AFTER INSERT ON public.task_assignees\n"
        f"FOR EACH ROW EXECUTE FUNCTION {WEBHOOK_FUNCTION}();"
    )


async def bootstrap_schema(
    provider: DatabaseProjectProvider,
    project_ref: str,
    webhook_base_url: str | None = None,
    webhook_secret: str | None = None,
) -> None:
    """Create tenant tables, seed the lead agent and install the webhook.

    The webhook is skipped unless both a base URL and a secret are given.
    """
    await provider.run_sql(project_ref, TENANT_SCHEMA_SQL)
    await provider.run_sql(project_ref, LEAD_AGENT_SQL)
    logger.info("Tenant schema created", context={"project_ref": project_ref})

    if not (webhook_base_url and webhook_secret):
        logger.info("Webhook not configured, skipping trigger", context={"project_ref": project_ref})
        return

    await provider.run_sql(project_ref, "CREATE EXTENSION IF NOT EXISTS pg_net;")
    await provider.run_sql(
        project_ref,
        render_webhook_function_sql(webhook_url(webhook_base_url, project_ref), webhook_secret),
    )
    await provider.run_sql(project_ref, render_webhook_trigger_sql())
    logger.info("Task assignment webhook installed", context={"project_ref": project_ref})
