"""Investor eligibility and proposal governance tables

Revision ID: 0001_investor_workflow
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_investor_workflow'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'investor_profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('accreditation_status', sa.String(30), nullable=False, server_default='unknown'),
        sa.Column('residence_state', sa.String(2), nullable=True),
        sa.Column('residence_country', sa.String(100), nullable=True),
        sa.Column('is_us_person', sa.Boolean(), nullable=True),
        sa.Column('total_invested', sa.Float(), nullable=False, server_default='0'),
        sa.Column('onboarding_step', sa.String(50), nullable=True),
        sa.Column('onboarding_completed', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('total_invested >= 0', name='ck_investor_profiles_total_invested'),
    )

    op.create_table(
        'accreditation_responses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('investor_id', sa.String(36), sa.ForeignKey('investor_profiles.id'), nullable=False),
        sa.Column('investor_type', sa.String(20), nullable=False),
        sa.Column('annual_income', sa.Float(), nullable=True),
        sa.Column('joint_income', sa.Float(), nullable=True),
        sa.Column('net_worth', sa.Float(), nullable=True),
        sa.Column('has_series_license', sa.Boolean(), nullable=True),
        sa.Column('license_type', sa.String(50), nullable=True),
        sa.Column('entity_assets', sa.Float(), nullable=True),
        sa.Column('all_owners_accredited', sa.Boolean(), nullable=True),
        sa.Column('is_501c3', sa.Boolean(), nullable=True),
        sa.Column('trust_assets', sa.Float(), nullable=True),
        sa.Column('trustor_accredited', sa.Boolean(), nullable=True),
        sa.Column('responses', sa.JSON(), nullable=True),
        sa.Column('uploaded_documents', sa.JSON(), nullable=True),
        sa.Column('determination', sa.String(30), nullable=False),
        sa.Column('determination_reasoning', sa.Text(), nullable=True),
        sa.Column('verified_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('reviewed_by', sa.String(36), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_accreditation_responses_investor_id', 'accreditation_responses', ['investor_id'])
    op.create_index('ix_accreditation_responses_created_at', 'accreditation_responses', ['created_at'])

    op.create_table(
        'governance_rules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('subsidiary_id', sa.String(36), nullable=False),
        sa.Column('rule_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('requires_approval', sa.Boolean(), nullable=True),
        sa.Column('approval_threshold', sa.Float(), nullable=False, server_default='50'),
        sa.Column('vote_weight_type', sa.String(30), nullable=False, server_default='ownership_percentage'),
        sa.Column('eligible_voters', sa.JSON(), nullable=True),
        sa.Column('voting_period_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('notice_period_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('founder_veto', sa.Boolean(), nullable=True),
        sa.Column('board_approval_required', sa.Boolean(), nullable=True),
        sa.Column('requires_unanimous', sa.Boolean(), nullable=True),
        sa.Column('exemptions', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_governance_rules_subsidiary_id', 'governance_rules', ['subsidiary_id'])

    op.create_table(
        'cap_table_proposals',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('subsidiary_id', sa.String(36), nullable=False),
        sa.Column('proposal_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('rationale', sa.Text(), nullable=True),
        sa.Column('proposed_changes', sa.JSON(), nullable=False),
        sa.Column('dilution_impact', sa.JSON(), nullable=True),
        sa.Column('ownership_before', sa.JSON(), nullable=True),
        sa.Column('ownership_after', sa.JSON(), nullable=True),
        sa.Column('valuation_impact', sa.JSON(), nullable=True),
        sa.Column('governance_rule_id', sa.String(36), sa.ForeignKey('governance_rules.id'), nullable=True),
        sa.Column('approval_threshold_used', sa.Float(), nullable=True),
        sa.Column('requires_unanimous', sa.Boolean(), nullable=True),
        sa.Column('total_voting_power', sa.Float(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('votes_for', sa.Float(), nullable=False, server_default='0'),
        sa.Column('votes_against', sa.Float(), nullable=False, server_default='0'),
        sa.Column('votes_abstain', sa.Float(), nullable=False, server_default='0'),
        sa.Column('vote_start_at', sa.DateTime(), nullable=True),
        sa.Column('vote_end_at', sa.DateTime(), nullable=True),
        sa.Column('proposed_by', sa.String(36), nullable=False),
        sa.Column('executed_by', sa.String(36), nullable=True),
        sa.Column('executed_at', sa.DateTime(), nullable=True),
        sa.Column('execution_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            'votes_for >= 0 AND votes_against >= 0 AND votes_abstain >= 0',
            name='ck_cap_table_proposals_tallies',
        ),
    )
    op.create_index('ix_cap_table_proposals_subsidiary_id', 'cap_table_proposals', ['subsidiary_id'])
    op.create_index('ix_cap_table_proposals_created_at', 'cap_table_proposals', ['created_at'])

    op.create_table(
        'proposal_votes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('proposal_id', sa.String(36), sa.ForeignKey('cap_table_proposals.id'), nullable=False),
        sa.Column('voter_id', sa.String(36), nullable=False),
        sa.Column('vote_choice', sa.String(10), nullable=False),
        sa.Column('vote_weight', sa.Float(), nullable=False),
        sa.Column('ownership_snapshot', sa.JSON(), nullable=True),
        sa.Column('understands_dilution', sa.Boolean(), nullable=False),
        sa.Column('acknowledged_terms', sa.Boolean(), nullable=False),
        sa.Column('reviewed_financials', sa.Boolean(), nullable=False),
        sa.Column('signature_data', sa.Text(), nullable=True),
        sa.Column('rationale', sa.Text(), nullable=True),
        sa.Column('voted_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('proposal_id', 'voter_id', name='uq_proposal_votes_proposal_voter'),
    )
    op.create_index('ix_proposal_votes_proposal_id', 'proposal_votes', ['proposal_id'])
    op.create_index('ix_proposal_votes_voter_id', 'proposal_votes', ['voter_id'])

    op.create_table(
        'cap_table',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('subsidiary_id', sa.String(36), nullable=False),
        sa.Column('share_class', sa.String(50), nullable=True),
        sa.Column('shares', sa.Float(), nullable=False, server_default='0'),
        sa.Column('ownership_percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('votes_per_share', sa.Float(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'subsidiary_id', name='uq_cap_table_user_subsidiary'),
    )
    op.create_index('ix_cap_table_user_id', 'cap_table', ['user_id'])
    op.create_index('ix_cap_table_subsidiary_id', 'cap_table', ['subsidiary_id'])

    op.create_table(
        'admin_roles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('role_type', sa.String(20), nullable=False),
        sa.Column('subsidiary_id', sa.String(36), nullable=True),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('granted_by', sa.String(36), nullable=True),
        sa.Column('granted_at', sa.DateTime(), nullable=True),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_admin_roles_user_id', 'admin_roles', ['user_id'])
    op.create_index('ix_admin_roles_subsidiary_id', 'admin_roles', ['subsidiary_id'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('proposal_id', sa.String(36), nullable=True),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('actor_id', sa.String(36), nullable=True),
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_activity_log_proposal_id', 'activity_log', ['proposal_id'])
    op.create_index('ix_activity_log_user_id', 'activity_log', ['user_id'])
    op.create_index('ix_activity_log_action_type', 'activity_log', ['action_type'])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('admin_roles')
    op.drop_table('cap_table')
    op.drop_table('proposal_votes')
    op.drop_table('cap_table_proposals')
    op.drop_table('governance_rules')
    op.drop_table('accreditation_responses')
    op.drop_table('investor_profiles')
