from alembic import op

revision = "create_payout_tables"
down_revision = None


def upgrade():
    op.execute("""
        CREATE TABLE IF NOT EXISTS drivers (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            phone VARCHAR(30),
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS trips (
            id SERIAL PRIMARY KEY,
            driver_id INTEGER NOT NULL REFERENCES drivers(id) ON DELETE CASCADE,
            vehicle_id INTEGER,
            trip_start_time TIMESTAMPTZ NOT NULL,
            trip_end_time TIMESTAMPTZ,
            fare_amount NUMERIC(14,4),
            platform_commission NUMERIC(14,4),
            trip_status VARCHAR(20) NOT NULL DEFAULT 'completed',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_trips_fare_non_negative CHECK (fare_amount >= 0),
            CONSTRAINT ck_trips_commission_non_negative CHECK (platform_commission >= 0)
        );

        CREATE TABLE IF NOT EXISTS payouts (
            id SERIAL PRIMARY KEY,
            driver_id INTEGER NOT NULL REFERENCES drivers(id) ON DELETE CASCADE,
            payout_date DATE NOT NULL,
            revenue_amount NUMERIC(18,8) NOT NULL DEFAULT 0,
            commission_amount NUMERIC(18,8) NOT NULL DEFAULT 0,
            incentive_amount NUMERIC(18,8) NOT NULL DEFAULT 0,
            deduction_amount NUMERIC(18,8) NOT NULL DEFAULT 0,
            net_payout NUMERIC(18,8) NOT NULL DEFAULT 0,
            approval_status VARCHAR(20) NOT NULL DEFAULT 'pending',
            approved_by VARCHAR(255),
            approved_at TIMESTAMPTZ,
            payment_status VARCHAR(20) NOT NULL DEFAULT 'pending',
            payment_reference VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_payouts_driver_date UNIQUE (driver_id, payout_date),
            CONSTRAINT ck_payouts_net_non_negative CHECK (net_payout >= 0)
        );

        CREATE TABLE IF NOT EXISTS deductions (
            id SERIAL PRIMARY KEY,
            driver_id INTEGER NOT NULL REFERENCES drivers(id) ON DELETE CASCADE,
            incident_id INTEGER,
            deduction_type VARCHAR(40),
            amount NUMERIC(14,4),
            reason TEXT,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            approved_by VARCHAR(255),
            approved_at TIMESTAMPTZ,
            applied_to_payout_id INTEGER REFERENCES payouts(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_trips_driver_start ON trips(driver_id, trip_start_time);
        CREATE INDEX IF NOT EXISTS idx_deductions_unapplied
            ON deductions(driver_id) WHERE status = 'approved' AND applied_to_payout_id IS NULL;
        CREATE INDEX IF NOT EXISTS idx_payouts_approval_status ON payouts(approval_status);
    """)


def downgrade():
    op.execute("""
        DROP TABLE IF EXISTS deductions CASCADE;
        DROP TABLE IF EXISTS payouts CASCADE;
        DROP TABLE IF EXISTS trips CASCADE;
        DROP TABLE IF EXISTS drivers CASCADE;
    """)
