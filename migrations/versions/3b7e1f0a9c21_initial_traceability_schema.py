"""initial traceability schema

Revision ID: 3b7e1f0a9c21
Revises:
Create Date: 2026-09-28 10:12:44.118302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3b7e1f0a9c21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


STAGES = ('FARMER', 'WASHING_STATION', 'FACTORY',
          'EXPORTER', 'IMPORTER', 'RETAILER')


def upgrade():
    op.create_table(
        'user',
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('role', sa.Enum(*STAGES, 'ADMIN', name='userrole'),
                  nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_email'), 'user', ['email'], unique=True)
    op.create_index(op.f('ix_user_name'), 'user', ['name'], unique=False)

    op.create_table(
        'productbatch',
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('lot_code', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('product_type', sa.Enum('COFFEE', 'TEA', name='producttype'),
                  nullable=False),
        sa.Column('origin', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('current_stage', sa.Enum(*STAGES, name='supplychainstage'),
                  nullable=False),
        sa.Column('farmer_id', sa.Uuid(), nullable=False),
        sa.Column('washing_station_id', sa.Uuid(), nullable=True),
        sa.Column('factory_id', sa.Uuid(), nullable=True),
        sa.Column('exporter_id', sa.Uuid(), nullable=True),
        sa.Column('importer_id', sa.Uuid(), nullable=True),
        sa.Column('retailer_id', sa.Uuid(), nullable=True),
        sa.Column('blockchain_tx_hash',
                  sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['farmer_id'], ['user.id']),
        sa.ForeignKeyConstraint(['washing_station_id'], ['user.id']),
        sa.ForeignKeyConstraint(['factory_id'], ['user.id']),
        sa.ForeignKeyConstraint(['exporter_id'], ['user.id']),
        sa.ForeignKeyConstraint(['importer_id'], ['user.id']),
        sa.ForeignKeyConstraint(['retailer_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_productbatch_lot_code'),
                    'productbatch', ['lot_code'], unique=True)
    op.create_index(op.f('ix_productbatch_product_type'),
                    'productbatch', ['product_type'], unique=False)
    op.create_index(op.f('ix_productbatch_current_stage'),
                    'productbatch', ['current_stage'], unique=False)
    op.create_index(op.f('ix_productbatch_deleted_at'),
                    'productbatch', ['deleted_at'], unique=False)

    op.create_table(
        'batchhistory',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('batch_id', sa.Uuid(), nullable=False),
        sa.Column('stage', postgresql.ENUM(*STAGES, name='supplychainstage',
                  create_type=False), nullable=False),
        sa.Column('changed_by', sa.Uuid(), nullable=False),
        sa.Column('notes', sqlmodel.sql.sqltypes.AutoString(length=1000),
                  nullable=True),
        sa.Column('quantity', sa.Float(), nullable=True),
        sa.Column('quality', sqlmodel.sql.sqltypes.AutoString(length=100),
                  nullable=True),
        sa.Column('location', sqlmodel.sql.sqltypes.AutoString(length=200),
                  nullable=True),
        sa.Column('blockchain_tx_hash',
                  sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['batch_id'], ['productbatch.id']),
        sa.ForeignKeyConstraint(['changed_by'], ['user.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_batchhistory_batch_id'),
                    'batchhistory', ['batch_id'], unique=False)
    op.create_index(op.f('ix_batchhistory_timestamp'),
                    'batchhistory', ['timestamp'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_batchhistory_timestamp'), table_name='batchhistory')
    op.drop_index(op.f('ix_batchhistory_batch_id'), table_name='batchhistory')
    op.drop_table('batchhistory')

    op.drop_index(op.f('ix_productbatch_deleted_at'), table_name='productbatch')
    op.drop_index(op.f('ix_productbatch_current_stage'),
                  table_name='productbatch')
    op.drop_index(op.f('ix_productbatch_product_type'),
                  table_name='productbatch')
    op.drop_index(op.f('ix_productbatch_lot_code'), table_name='productbatch')
    op.drop_table('productbatch')

    op.drop_index(op.f('ix_user_name'), table_name='user')
    op.drop_index(op.f('ix_user_email'), table_name='user')
    op.drop_table('user')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        op.execute("DROP TYPE IF EXISTS supplychainstage")
        op.execute("DROP TYPE IF EXISTS producttype")
        op.execute("DROP TYPE IF EXISTS userrole")
