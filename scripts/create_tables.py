#!/usr/bin/env python3
"""Create the Lead Relay database tables and counter functions."""

import os
import psycopg2
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

SQL = """
-- 1. webhooks
CREATE TABLE IF NOT EXISTS webhooks (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    webhook_id VARCHAR(100) UNIQUE NOT NULL,
    user_id UUID,
    name VARCHAR(255),
    trigger_type VARCHAR(50) NOT NULL DEFAULT 'generic',
    status VARCHAR(20) NOT NULL DEFAULT 'active',
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
    success_count INTEGER NOT NULL DEFAULT 0,
    last_triggered TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_webhooks_user_trigger ON webhooks(user_id, trigger_type, status);

-- 2. webhook_logs (append-only; webhook_id also holds fixed channel ids)
CREATE TABLE IF NOT EXISTS webhook_logs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    webhook_id VARCHAR(100) NOT NULL,
    method VARCHAR(10) NOT NULL,
    headers JSONB NOT NULL DEFAULT '{}'::jsonb,
    body JSONB,
    raw_body TEXT,
    query_params JSONB NOT NULL DEFAULT '{}'::jsonb,
    ip_address VARCHAR(64),
    user_agent TEXT,
    is_error BOOLEAN NOT NULL DEFAULT FALSE,
    received_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_webhook_logs_webhook_received ON webhook_logs(webhook_id, received_at DESC);

-- 3. lists
CREATE TABLE IF NOT EXISTS lists (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL,
    list_name VARCHAR(255) NOT NULL,
    list_description TEXT,
    type VARCHAR(50) NOT NULL DEFAULT 'Marketing',
    contacts_count INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_lists_user_name ON lists(user_id, list_name);

-- 4. contacts
CREATE TABLE IF NOT EXISTS contacts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    list_id UUID NOT NULL REFERENCES lists(id) ON DELETE CASCADE,
    email VARCHAR(255) NOT NULL DEFAULT '',
    full_name VARCHAR(250) NOT NULL DEFAULT '',
    phone_number VARCHAR(32) NOT NULL DEFAULT '',
    first_name VARCHAR(100) NOT NULL DEFAULT '',
    last_name VARCHAR(100) NOT NULL DEFAULT '',
    company VARCHAR(255) NOT NULL DEFAULT '',
    custom_fields JSONB NOT NULL DEFAULT '{}'::jsonb,
    source VARCHAR(50) NOT NULL DEFAULT 'webhook',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_contacts_list_email ON contacts(list_id, email);

-- 5. facebook_pages
CREATE TABLE IF NOT EXISTS facebook_pages (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    page_id VARCHAR(64) UNIQUE NOT NULL,
    user_id UUID NOT NULL,
    page_name VARCHAR(255),
    page_access_token TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- 6. facebook_lead_forms
CREATE TABLE IF NOT EXISTS facebook_lead_forms (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    form_id VARCHAR(64) UNIQUE NOT NULL,
    page_id VARCHAR(64) NOT NULL,
    form_name VARCHAR(255),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- 7. facebook_leads (campaign_created only ever goes false -> true)
CREATE TABLE IF NOT EXISTS facebook_leads (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    lead_id VARCHAR(64) UNIQUE NOT NULL,
    form_id VARCHAR(64),
    page_id VARCHAR(64),
    user_id UUID,
    lead_data JSONB NOT NULL DEFAULT '[]'::jsonb,
    created_time TIMESTAMPTZ,
    processed_at TIMESTAMPTZ,
    list_id UUID REFERENCES lists(id) ON DELETE SET NULL,
    campaign_created BOOLEAN NOT NULL DEFAULT FALSE,
    campaign_id VARCHAR(100),
    campaign_status VARCHAR(20),
    campaign_error TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- 8. test_lead_data
CREATE TABLE IF NOT EXISTS test_lead_data (
    lead_id VARCHAR(64) PRIMARY KEY,
    field_data JSONB NOT NULL DEFAULT '[]'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_test_lead_data_expires_at ON test_lead_data(expires_at);

-- 9. assistants
CREATE TABLE IF NOT EXISTS assistants (
    id BIGSERIAL PRIMARY KEY,
    assistant_id VARCHAR(100) UNIQUE NOT NULL,
    user_id UUID,
    name VARCHAR(255),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- 10. user_provider_credentials
CREATE TABLE IF NOT EXISTS user_provider_credentials (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL,
    provider_slug VARCHAR(50) NOT NULL,
    api_key TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE(user_id, provider_slug)
);

-- 11. observability_metric_snapshots
CREATE TABLE IF NOT EXISTS observability_metric_snapshots (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    source VARCHAR(100) NOT NULL,
    request_id VARCHAR(100),
    counters JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

COUNTER_FUNCTIONS = """
CREATE OR REPLACE FUNCTION increment_list_contacts_count(p_list_id UUID, p_delta INTEGER DEFAULT 1)
RETURNS INTEGER
LANGUAGE sql
AS $$
    UPDATE lists
    SET contacts_count = contacts_count + p_delta, updated_at = NOW()
    WHERE id = p_list_id
    RETURNING contacts_count;
$$;

CREATE OR REPLACE FUNCTION record_webhook_delivery(p_webhook_id VARCHAR)
RETURNS INTEGER
LANGUAGE sql
AS $$
    UPDATE webhooks
    SET success_count = success_count + 1, last_triggered = NOW()
    WHERE webhook_id = p_webhook_id
    RETURNING success_count;
$$;
"""

def main():
    print("Connecting to database...")
    conn = psycopg2.connect(DATABASE_URL)
    conn.autocommit = True
    cur = conn.cursor()

    print("Creating tables...")
    cur.execute(SQL)

    print("Creating counter functions...")
    cur.execute(COUNTER_FUNCTIONS)

    # Verify
    cur.execute("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public' ORDER BY table_name;")
    tables = cur.fetchall()
    print(f"\nTables created: {[t[0] for t in tables]}")

    cur.execute(
        "SELECT routine_name FROM information_schema.routines "
        "WHERE routine_schema = 'public' AND routine_name IN "
        "('increment_list_contacts_count', 'record_webhook_delivery');"
    )
    functions = cur.fetchall()
    print(f"Functions: {[f[0] for f in functions]}")

    cur.close()
    conn.close()
    print("\nDone!")

if __name__ == "__main__":
    main()
