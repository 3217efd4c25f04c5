"""Create quote-to-cash tables

Revision ID: 001_create_quote_to_cash_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_quote_to_cash_schema'
down_revision = None
branch_labels = None
depends_on = None

inquiry_status = sa.Enum('NEW', 'QUOTED', 'ACCEPTED', 'DECLINED', 'ARCHIVED', name='inquirystatus')
timeline = sa.Enum('RUSH', 'NORMAL', 'FLEXIBLE', name='timeline')
document_type = sa.Enum('SERVICE_AGREEMENT', name='documenttype')
legal_document_status = sa.Enum('DRAFT', 'SENT', 'ACKNOWLEDGED', 'EXPIRED', 'VOIDED', name='legaldocumentstatus')
invoice_status = sa.Enum('UNPAID', 'PARTIALLY_PAID', 'PAID', 'OVERDUE', 'CANCELLED', name='invoicestatus')
payment_method = sa.Enum('STRIPE', 'BANK_TRANSFER', name='paymentmethod')
outbox_task_kind = sa.Enum('SIGNING_LINK', 'INVOICE_NOTICE', 'INVOICE_DISPATCH', name='outboxtaskkind')
outbox_task_status = sa.Enum('PENDING', 'RUNNING', 'DONE', 'FAILED', name='outboxtaskstatus')


def upgrade():
    # Create clients table
    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('emails', sa.JSON(), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Create inquiries table
    op.create_table(
        'inquiries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('project_type', sa.String(), nullable=False),
        sa.Column('project_goal', sa.String(), nullable=False),
        sa.Column('target_audience', sa.String(), nullable=True),
        sa.Column('timeline', timeline, nullable=True),
        sa.Column('status', inquiry_status, nullable=False),
        sa.Column('final_price_minor', sa.Integer(), nullable=True),
        sa.Column('quoted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('converted_to_client_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['converted_to_client_id'], ['clients.id']),
    )
    op.create_index('ix_inquiries_status', 'inquiries', ['status'])

    # Create legal_documents table
    op.create_table(
        'legal_documents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('document_number', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('document_type', document_type, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('status', legal_document_status, nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('inquiry_id', sa.Uuid(), nullable=True),
        sa.Column('jurisdiction', sa.String(), nullable=True),
        sa.Column('client_signature', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['inquiry_id'], ['inquiries.id']),
    )
    op.create_index('ix_legal_documents_document_number', 'legal_documents', ['document_number'], unique=True)
    op.create_index('ix_legal_documents_status', 'legal_documents', ['status'])
    op.create_index('ix_legal_documents_client_id', 'legal_documents', ['client_id'])

    # Create invoices table
    op.create_table(
        'invoices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('invoice_number', sa.String(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('inquiry_id', sa.Uuid(), nullable=True),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('total_minor', sa.Integer(), nullable=False),
        sa.Column('amount_paid_minor', sa.Integer(), nullable=False),
        sa.Column('status', invoice_status, nullable=False),
        sa.Column('paid_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', payment_method, nullable=True),
        sa.Column('payment_reference', sa.String(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['inquiry_id'], ['inquiries.id']),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_client_id', 'invoices', ['client_id'])

    # Create invoice_items table
    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('invoice_id', sa.Uuid(), nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_minor', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    # Create outbox_tasks table
    op.create_table(
        'outbox_tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('kind', outbox_task_kind, nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('idempotency_key', sa.String(), nullable=False),
        sa.Column('run_after', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', outbox_task_status, nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_outbox_tasks_idempotency_key', 'outbox_tasks', ['idempotency_key'], unique=True)
    op.create_index('ix_outbox_tasks_run_after', 'outbox_tasks', ['run_after'])
    op.create_index('ix_outbox_tasks_status', 'outbox_tasks', ['status'])

    # Create processed_payment_events table
    op.create_table(
        'processed_payment_events',
        sa.Column('event_id', sa.String(), primary_key=True),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('invoice_id', sa.Uuid(), nullable=True),
        sa.Column('outcome', sa.String(), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade():
    # Drop tables in reverse order
    op.drop_table('processed_payment_events')
    op.drop_table('outbox_tasks')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('legal_documents')
    op.drop_table('inquiries')
    op.drop_table('clients')

    bind = op.get_bind()
    for enum in (
        outbox_task_status, outbox_task_kind, payment_method, invoice_status,
        legal_document_status, document_type, timeline, inquiry_status,
    ):
        enum.drop(bind, checkfirst=True)
