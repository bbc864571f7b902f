from app.core.rbac.models import ADMIN_ALL

# (code, name, module, description)
PERMISSION_CATALOG: tuple[tuple[str, str, str, str], ...] = (
    ("inc.create", "Criar INC", "inc", "Permite criar novos registros de INC"),
    ("inc.read", "Visualizar INC", "inc", "Permite visualizar registros de INC"),

    ("rnc.create", "Criar RNC", "rnc", "Permite criar novos relatórios de não conformidade"),
    ("rnc.read", "Visualizar RNC", "rnc", "Permite visualizar relatórios de não conformidade"),
    ("rnc.update", "Editar RNC", "rnc", "Permite editar relatórios de não conformidade"),
    ("rnc.delete", "Deletar RNC", "rnc", "Permite deletar relatórios de não conformidade"),
    ("rnc.approve", "Aprovar por Concessão", "rnc", "Permite aprovar INC por concessão"),

    ("devolucao.create", "Criar Devolução", "devolucao", "Permite criar solicitações de devolução"),
    ("devolucao.read", "Visualizar Devolução", "devolucao", "Permite visualizar devoluções"),
    ("devolucao.emitir_nfe", "Emitir NF-e", "devolucao", "Permite emitir nota fiscal eletrônica de devolução"),
    ("devolucao.confirmar_coleta", "Confirmar Coleta", "devolucao", "Permite confirmar coleta da mercadoria"),
    ("devolucao.confirmar_recebimento", "Confirmar Recebimento", "devolucao", "Permite confirmar recebimento da mercadoria"),
    ("devolucao.confirmar_compensacao", "Confirmar Compensação", "devolucao", "Permite confirmar compensação fiscal"),
    ("devolucao.delete", "Deletar Devolução", "devolucao", "Permite deletar devoluções"),

    ("conserto.create", "Criar Conserto", "conserto", "Permite criar solicitações de conserto"),
    ("conserto.read", "Visualizar Conserto", "conserto", "Permite visualizar consertos"),
    ("conserto.emitir_nfe", "Emitir NF-e Conserto", "conserto", "Permite emitir nota fiscal eletrônica de conserto"),
    ("conserto.confirmar_coleta", "Confirmar Coleta", "conserto", "Permite confirmar coleta do material"),
    ("conserto.confirmar_recebimento", "Confirmar Recebimento", "conserto", "Permite confirmar recebimento do material"),
    ("conserto.confirmar_retorno", "Confirmar Retorno Material", "conserto", "Permite confirmar retorno do material após conserto"),
    ("conserto.aprovar_inspecao", "Aprovar Inspeção", "conserto", "Permite aprovar inspeção de material consertado"),
    ("conserto.rejeitar_inspecao", "Rejeitar Inspeção", "conserto", "Permite rejeitar inspeção de material consertado"),
    ("conserto.delete", "Deletar Conserto", "conserto", "Permite deletar consertos"),

    ("notifications.read", "Visualizar Notificações", "notifications", "Permite visualizar próprias notificações"),
    ("notifications.manage_types", "Gerenciar Tipos", "notifications", "Admin: sincronizar tipos de notificação"),
    ("notifications.manage_settings", "Gerenciar Configurações de Usuários", "notifications", "Admin: configurar notificações de outros usuários"),

    (ADMIN_ALL, "Administrador Total", "admin", "Acesso total ao sistema"),
)
