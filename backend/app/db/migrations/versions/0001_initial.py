"""Initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00
"""
from typing import Sequence, Union
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def _uuid(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), nullable=nullable)


def upgrade() -> None:
    # ── users & permissions ───────────────────────────────────────────────────
    op.create_table(
        "users",
        _uuid("id"),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("nome", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "permissions",
        _uuid("id"),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("module", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "user_permissions",
        _uuid("id"),
        _uuid("user_id"),
        _uuid("permission_id"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),
    )
    op.create_index("ix_user_permissions_user_id", "user_permissions", ["user_id"])

    op.create_table(
        "audit_log",
        _uuid("id"),
        _uuid("user_id", nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(100), nullable=False),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("detail", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_resource", "audit_log", ["resource_type", "resource_id"])
    op.create_index("ix_audit_log_user_created", "audit_log", ["user_id", "created_at"])

    # ── suppliers & INC ───────────────────────────────────────────────────────
    op.create_table(
        "fornecedores",
        _uuid("id"),
        sa.Column("cnpj", sa.String(14), nullable=False),
        sa.Column("razao_social", sa.String(255), nullable=False),
        sa.Column("codigo_logix", sa.String(50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cnpj"),
    )

    op.create_table(
        "incs",
        _uuid("id"),
        sa.Column("ar", sa.Integer, nullable=False),
        sa.Column("nfe_numero", sa.String(50), nullable=False),
        sa.Column("um", sa.String(10), nullable=False),
        sa.Column("quantidade_recebida", sa.Numeric(14, 3), nullable=False),
        sa.Column("quantidade_com_defeito", sa.Numeric(14, 3), nullable=False),
        sa.Column("descricao", sa.String(2000), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="Em análise"),
        _uuid("fornecedor_id"),
        _uuid("criado_por_id", nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["fornecedor_id"], ["fornecedores.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["criado_por_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_incs_ar", "incs", ["ar"])
    op.create_index("ix_incs_fornecedor_id", "incs", ["fornecedor_id"])

    # ── RNC ───────────────────────────────────────────────────────────────────
    op.create_table(
        "rnc_sequences",
        _uuid("id"),
        _uuid("fornecedor_id"),
        sa.Column("ano", sa.Integer, nullable=False),
        sa.Column("last_seq", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["fornecedor_id"], ["fornecedores.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("fornecedor_id", "ano", name="uq_rnc_sequence_fornecedor_ano"),
    )
    op.create_index("ix_rnc_sequences_fornecedor_id", "rnc_sequences", ["fornecedor_id"])

    op.create_table(
        "rncs",
        _uuid("id"),
        sa.Column("numero", sa.String(30), nullable=False),
        sa.Column("sequencial", sa.Integer, nullable=False),
        sa.Column("ano", sa.Integer, nullable=False),
        sa.Column("data", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ar", sa.Integer, nullable=False),
        sa.Column("nfe_numero", sa.String(50), nullable=False),
        sa.Column("um", sa.String(10), nullable=False),
        sa.Column("quantidade_recebida", sa.Numeric(14, 3), nullable=False),
        sa.Column("quantidade_com_defeito", sa.Numeric(14, 3), nullable=False),
        sa.Column("descricao_nao_conformidade", sa.Text, nullable=True),
        sa.Column("reincidente", sa.Boolean, nullable=False, server_default="false"),
        _uuid("rnc_anterior_id", nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="RNC enviada"),
        sa.Column("prazo_inicio", sa.DateTime(timezone=True), nullable=False),
        sa.Column("pdf_path", sa.String(500), nullable=True),
        sa.Column("plano_acao_pdf_path", sa.String(500), nullable=True),
        _uuid("inc_id"),
        _uuid("fornecedor_id"),
        _uuid("criado_por_id"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["rnc_anterior_id"], ["rncs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["inc_id"], ["incs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["fornecedor_id"], ["fornecedores.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["criado_por_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("fornecedor_id", "ano", "sequencial", name="uq_rnc_fornecedor_ano_sequencial"),
    )
    op.create_index("ix_rncs_status", "rncs", ["status"])
    op.create_index("ix_rncs_inc_id", "rncs", ["inc_id"])
    op.create_index("ix_rncs_fornecedor_id", "rncs", ["fornecedor_id"])

    op.create_table(
        "rnc_historico",
        _uuid("id"),
        _uuid("rnc_id"),
        sa.Column("tipo", sa.String(20), nullable=False),
        sa.Column("pdf_path", sa.String(500), nullable=False),
        sa.Column("justificativa", sa.Text, nullable=True),
        sa.Column("prazo_inicio", sa.DateTime(timezone=True), nullable=False),
        sa.Column("prazo_fim", sa.DateTime(timezone=True), nullable=False),
        _uuid("criado_por_id"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["rnc_id"], ["rncs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["criado_por_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rnc_historico_rnc_id", "rnc_historico", ["rnc_id"])

    # ── remediation ───────────────────────────────────────────────────────────
    def stage_columns() -> list[sa.Column]:
        return [
            sa.Column("nfe_numero", sa.String(50), nullable=True),
            sa.Column("nfe_pdf_path", sa.String(500), nullable=True),
            sa.Column("nfe_emitida_em", sa.DateTime(timezone=True), nullable=True),
            _uuid("nfe_emitida_por_id", nullable=True),
            sa.Column("data_coleta", sa.DateTime(timezone=True), nullable=True),
            _uuid("coleta_confirmada_por_id", nullable=True),
            sa.Column("data_recebimento", sa.DateTime(timezone=True), nullable=True),
            _uuid("recebimento_confirmado_por_id", nullable=True),
        ]

    def actor_fks(*columns: str) -> list[sa.ForeignKeyConstraint]:
        return [sa.ForeignKeyConstraint([c], ["users.id"], ondelete="SET NULL") for c in columns]

    op.create_table(
        "devolucoes",
        _uuid("id"),
        _uuid("rnc_id"),
        sa.Column("ar_origem", sa.Integer, nullable=False),
        sa.Column("quantidade_total", sa.Numeric(14, 3), nullable=False),
        sa.Column("peso_kg", sa.Numeric(14, 3), nullable=False),
        sa.Column("motivo", sa.Text, nullable=False),
        sa.Column("transportadora", sa.String(255), nullable=False),
        sa.Column("frete", sa.String(3), nullable=False),
        sa.Column("meio_compensacao", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="DEVOLUCAO_SOLICITADA"),
        _uuid("criado_por_id"),
        *stage_columns(),
        sa.Column("data_compensacao", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comprovante_path", sa.String(500), nullable=True),
        _uuid("compensacao_confirmada_por_id", nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["rnc_id"], ["rncs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["criado_por_id"], ["users.id"], ondelete="RESTRICT"),
        *actor_fks("nfe_emitida_por_id", "coleta_confirmada_por_id", "recebimento_confirmado_por_id", "compensacao_confirmada_por_id"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("rnc_id"),
    )
    op.create_index("ix_devolucoes_status", "devolucoes", ["status"])

    op.create_table(
        "consertos",
        _uuid("id"),
        _uuid("rnc_id"),
        sa.Column("ar_origem", sa.Integer, nullable=False),
        sa.Column("quantidade_total", sa.Numeric(14, 3), nullable=False),
        sa.Column("peso_kg", sa.Numeric(14, 3), nullable=False),
        sa.Column("motivo", sa.Text, nullable=False),
        sa.Column("transportadora", sa.String(255), nullable=True),
        sa.Column("frete", sa.String(3), nullable=False),
        sa.Column("conserto_em_garantia", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("status", sa.String(50), nullable=False, server_default="CONSERTO_SOLICITADA"),
        _uuid("criado_por_id"),
        *stage_columns(),
        sa.Column("prazo_conserto_inicio", sa.DateTime(timezone=True), nullable=True),
        sa.Column("prazo_conserto_fim", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data_retorno", sa.DateTime(timezone=True), nullable=True),
        sa.Column("nfe_retorno_numero", sa.String(50), nullable=True),
        sa.Column("nfe_retorno_pdf_path", sa.String(500), nullable=True),
        _uuid("retorno_confirmado_por_id", nullable=True),
        sa.Column("inspecao_resultado", sa.String(20), nullable=False, server_default="PENDENTE"),
        sa.Column("inspecao_data", sa.DateTime(timezone=True), nullable=True),
        sa.Column("inspecao_descricao", sa.Text, nullable=True),
        _uuid("inspecao_realizada_por_id", nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["rnc_id"], ["rncs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["criado_por_id"], ["users.id"], ondelete="RESTRICT"),
        *actor_fks(
            "nfe_emitida_por_id", "coleta_confirmada_por_id", "recebimento_confirmado_por_id",
            "retorno_confirmado_por_id", "inspecao_realizada_por_id",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("rnc_id"),
    )
    op.create_index("ix_consertos_status", "consertos", ["status"])

    op.create_table(
        "conserto_inspecao_fotos",
        _uuid("id"),
        _uuid("conserto_id"),
        sa.Column("path", sa.String(500), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["conserto_id"], ["consertos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_conserto_inspecao_fotos_conserto_id", "conserto_inspecao_fotos", ["conserto_id"])

    # ── notifications ─────────────────────────────────────────────────────────
    op.create_table(
        "notification_types",
        _uuid("id"),
        sa.Column("codigo", sa.String(100), nullable=False),
        sa.Column("nome", sa.String(255), nullable=False),
        sa.Column("descricao", sa.Text, nullable=True),
        sa.Column("modulo", sa.String(50), nullable=False),
        sa.Column("canal", sa.String(50), nullable=False, server_default="sistema"),
        sa.Column("ativo", sa.Boolean, nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("codigo"),
    )

    op.create_table(
        "user_notification_settings",
        _uuid("id"),
        _uuid("user_id"),
        _uuid("notification_type_id"),
        sa.Column("habilitado", sa.Boolean, nullable=False, server_default="true"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["notification_type_id"], ["notification_types.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "notification_type_id", name="uq_user_notification_setting"),
    )
    op.create_index("ix_user_notification_settings_user_id", "user_notification_settings", ["user_id"])

    op.create_table(
        "notifications",
        _uuid("id"),
        _uuid("notification_type_id"),
        _uuid("user_id"),
        sa.Column("titulo", sa.String(255), nullable=False),
        sa.Column("mensagem", sa.Text, nullable=False),
        sa.Column("urgente", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("entity_type", sa.String(50), nullable=True),
        _uuid("entity_id", nullable=True),
        sa.Column("unique_key", sa.String(255), nullable=False),
        sa.Column("lida", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("data_leitura", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["notification_type_id"], ["notification_types.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "unique_key", name="uq_notification_user_key"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    for table in (
        "notifications", "user_notification_settings", "notification_types",
        "conserto_inspecao_fotos", "consertos", "devolucoes",
        "rnc_historico", "rncs", "rnc_sequences",
        "incs", "fornecedores",
        "audit_log", "user_permissions", "permissions", "users",
    ):
        op.drop_table(table)
