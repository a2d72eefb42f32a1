"""Feature keys: recognising that differently worded titles describe one feature.

``FeatureClassifier`` only looks at titles shaped like
``Sistema de X`` / ``API de X`` / ``Interface de X`` and maps ``X`` onto a
closed table of synonyms. The table is immutable and injected, so two
classifiers never share mutable state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

TITLE_PATTERN = re.compile(r"(?:Sistema|API|Interface)\s+de\s+(.+)", re.IGNORECASE)


@dataclass(frozen=True)
class FeatureEntry:
    key: str
    display_name: str
    synonyms: Tuple[str, ...]


class FeatureTable:
    """Ordered, read-only mapping of feature key -> entry."""

    def __init__(self, entries: Iterable[FeatureEntry]) -> None:
        ordered: dict[str, FeatureEntry] = {}
        for entry in entries:
            if entry.key in ordered:
                raise ValueError(f"Duplicate feature key: {entry.key}")
            if not entry.synonyms:
                raise ValueError(f"Feature '{entry.key}' has no synonyms")
            ordered[entry.key] = entry
        self._entries: Mapping[str, FeatureEntry] = MappingProxyType(ordered)

    @classmethod
    def from_config(cls, raw: Sequence[Mapping[str, Any]]) -> "FeatureTable":
        entries = []
        for item in raw:
            key = str(item["key"]).strip()
            synonyms = tuple(str(s).lower() for s in item.get("synonyms") or [] if str(s).strip())
            entries.append(FeatureEntry(key=key, display_name=str(item.get("display_name") or key), synonyms=synonyms))
        return cls(entries)

    def __iter__(self) -> Iterator[FeatureEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[FeatureEntry]:
        return self._entries.get(key)

    def keys(self) -> List[str]:
        return list(self._entries)


def _entry(key: str, display_name: str, *synonyms: str) -> FeatureEntry:
    return FeatureEntry(key=key, display_name=display_name, synonyms=tuple(synonyms))


# Order matters: the first key with a matching synonym wins. Synonyms are
# matched as substrings, so stems that occur inside unrelated words
# ("conta" in "contatos", "orm" in "informações", "env" in "envios") are
# listed only in longer forms.
DEFAULT_FEATURE_TABLE = FeatureTable(
    [
        _entry("auth", "Autenticação",
               "auth", "login", "logout", "register", "signup", "signin", "password", "senha", "session", "sessão",
               "sessao", "token", "jwt", "oauth", "credential", "autenticação", "autenticacao"),
        _entry("user", "Usuários",
               "user", "usuário", "usuario", "profile", "perfil", "account", "contas de usuário", "contas de usuario",
               "avatar", "preferences", "preferências", "preferencias", "member", "membro"),
        _entry("payment", "Pagamentos",
               "payment", "pagamento", "billing", "cobrança", "cobranca", "checkout", "stripe", "invoice", "fatura",
               "subscription", "assinatura", "pricing"),
        _entry("database", "Banco de Dados",
               "database", "banco de dados", "supabase", "prisma", "drizzle", "postgres", "mysql", "mongo",
               "migration", "migração", "migracao", "persistência", "persistencia", "serializers", "querysets",
               "repository", "typeorm", "sqlalchemy", "gorm", "jpa", "hibernate", "activerecord"),
        _entry("n8n", "Automação",
               "n8n", "workflow", "automation", "automação", "automacao", "trigger", "webhook", "execution"),
        _entry("ai", "Inteligência Artificial",
               "openai", "gpt", "llm", "embedding", "vector", "langchain", "claude", "anthropic",
               "inteligência artificial", "inteligencia artificial"),
        _entry("notification", "Notificações",
               "notification", "notificação", "notificacao", "notificações", "notificacoes", "alert", "alerta",
               "toast", "email", "e-mail", "mail", "sms", "push notification", "mailer"),
        _entry("card", "Cards", "card", "cartão", "cartao", "feature"),
        _entry("project", "Projetos", "project", "projeto", "repositório", "repositorio"),
        _entry("github_import", "Importação GitHub",
               "github", "githubimport", "repo-import", "zipball"),
        _entry("grouping", "Agrupamento", "group", "grupo", "cluster", "agrupamento"),
        _entry("template", "Templates", "template", "modelo de página", "modelo de pagina"),
        _entry("content", "Conteúdo",
               "content", "conteúdo", "conteudo", "posts", "postagem", "postagens", "article", "artigo"),
        _entry("admin", "Administração",
               "admin", "administração", "administracao", "dashboard", "painel", "backoffice"),
        _entry("api", "Clientes HTTP",
               "apiclient", "httpclient", "axios", "fetch", "cliente http", "clientes http"),
        _entry("storage", "Armazenamento",
               "storage", "armazenamento", "upload", "file", "arquivo", "s3", "bucket", "blob"),
        _entry("middleware", "Middlewares",
               "middleware", "cors", "error", "erros", "ratelimit", "rate limit", "limiter", "decorators",
               "beforerequest", "afterrequest", "interceptor", "filter", "aspect", "concern"),
        _entry("routing", "Rotas", "route", "router", "routing", "rotas", "roteamento", "protected", "guard"),
        _entry("ui", "Elementos de Interface",
               "elementos de interface", "button", "botão", "botao", "botões", "botoes", "input", "dialog",
               "modals", "modais", "dropdown", "formulário", "formulario", "table", "tabela", "layout", "sidebar",
               "navigation", "navegação", "navegacao"),
        _entry("docs", "Documentação",
               "readme", "documentation", "documentação", "documentacao", "docs", "guide", "tutorial", "changelog",
               "contributing", "license", "roadmap", "architecture", "arquitetura", "design"),
        _entry("skill", "Skills", "skill"),
        _entry("utils", "Utilitários",
               "utils", "utilitário", "utilitario", "helper", "libs", "library", "common", "shared", "constants",
               "constantes", "types"),
        _entry("config", "Configuração",
               "config", "configuração", "configuracao", "settings", "environment", "variáveis de ambiente",
               "variaveis de ambiente", "setup", "initialize", "server", "servidor"),
        _entry("test", "Testes",
               "tests", "testes", "teste", "testing", "specs", "__tests__", "e2e", "integration", "unit test",
               "mock", "fixture"),
        _entry("build", "Build",
               "build", "webpack", "rollup", "esbuild", "tsconfig", "babel", "eslint", "prettier", "lint",
               "formatter"),
        _entry("style", "Estilos",
               "css", "scss", "sass", "style", "estilo", "tailwind", "theme", "colors"),
        _entry("hook", "Hooks", "hook"),
        _entry("controller", "Controllers",
               "controller", "controlador", "endpoint", "viewsets", "apiview", "requestmapping"),
        _entry("service", "Serviços",
               "service", "serviço", "servico", "business", "logic", "lógica", "usecase", "use case",
               "interactor", "regras de negócio", "regras de negocio", "component"),
        _entry("validation", "Validação",
               "validator", "validation", "validação", "validacao", "validate", "schema", "zod", "yup",
               "pydantic", "constraint", "formrequest", "request"),
        _entry("jobs", "Tarefas em Background",
               "worker", "job", "queue", "filas", "bull", "agenda", "celery", "tasks", "tarefas", "scheduled",
               "async", "executor", "sidekiq", "activejob", "delayed"),
    ]
)


class FeatureClassifier:
    """Map card titles to canonical feature keys using a closed synonym table."""

    def __init__(self, table: FeatureTable = DEFAULT_FEATURE_TABLE) -> None:
        self.table = table

    def extract_feature_key(self, title: str) -> Optional[str]:
        match = TITLE_PATTERN.search(title or "")
        if not match:
            return None
        rest = match.group(1).strip().lower()
        for entry in self.table:
            if any(synonym in rest for synonym in entry.synonyms):
                return entry.key
        return None

    def display_name(self, key: str) -> str:
        entry = self.table.get(key)
        return entry.display_name if entry else key

    def canonical_tag(self, tag: str) -> str:
        """Return the display name when ``tag`` is a feature key or an exact synonym."""

        lowered = tag.strip().lower()
        for entry in self.table:
            if lowered == entry.key or lowered in entry.synonyms:
                return entry.display_name
        return tag.strip()

    def normalize_tags(self, tags: Iterable[str]) -> List[str]:
        seen: set[str] = set()
        result: List[str] = []
        for tag in tags:
            canonical = self.canonical_tag(str(tag))
            if len(canonical) <= 2:
                continue
            marker = canonical.lower()
            if marker in seen:
                continue
            seen.add(marker)
            result.append(canonical)
        return result
