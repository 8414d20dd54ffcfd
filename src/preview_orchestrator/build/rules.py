"""Ordered, idempotent source rewrites applied to every file of a draft.

Each rule is a no-op when its target pattern is already satisfied, so
applying the whole batch twice yields the same text as applying it once.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from preview_orchestrator.build.templates import (
    DEFAULT_NEXT_CONFIG,
    FIXED_DEPENDENCIES,
    FIXED_DEV_DEPENDENCIES,
    POLKADOT_VERSIONS,
)

logger = logging.getLogger(__name__)

COMPAT_PATH = "lib/reactQueryCompat.ts"
ROOT_LAYOUT_PATH = "app/layout.tsx"
GLOBALS_IMPORT = "import '@/app/globals.css'"
MAX_PASSES = 4

CLIENT_MARKERS = (
    "useSearchParams",
    "useRouter",
    "useState",
    "useEffect",
    "onClick",
    "onChange",
    "useForm",
    "signIn(",
    "signOut(",
)

_CALLBACK_METHODS = "map|filter|forEach|find|some|every"
_PREFERENCE_STORE_MODULES = (
    "preferenceStore",
    "usePreference",
    "preference",
    "usePreferenceStore",
    "PreferenceStore",
)


@dataclass(frozen=True)
class RewriteRule:
    name: str
    applies: Callable[[str], bool]
    rewrite: Callable[[str, str], str]


def _is_source(path: str) -> bool:
    return path.endswith((".ts", ".tsx"))


def _is_tsx(path: str) -> bool:
    return path.endswith(".tsx")


def _is_plain_ts(path: str) -> bool:
    return path.endswith(".ts") and not path.endswith(".tsx")


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def _is_root_layout(path: str) -> bool:
    return path == ROOT_LAYOUT_PATH or path.endswith("/" + ROOT_LAYOUT_PATH)


def _has_client_directive(content: str) -> bool:
    stripped = content.lstrip()
    return stripped.startswith('"use client"') or stripped.startswith("'use client'")


def _not_compat(path: str) -> bool:
    return _is_source(path) and path != COMPAT_PATH


# Manifest and config files.


def pin_package_json(port: int) -> Callable[[str, str], str]:
    def rewrite(_path: str, content: str) -> str:
        try:
            payload = json.loads(content)
        except json.JSONDecodeError:
            return content
        if not isinstance(payload, dict):
            return content

        scripts = {
            name: value
            for name, value in _object(payload.get("scripts")).items()
            if not (isinstance(value, str) and "patch-package" in value)
        }
        scripts.update({"dev": f"next dev -p {port}", "build": "next build", "start": f"next start -p {port}"})
        payload["scripts"] = scripts

        dependencies = _object(payload.get("dependencies"))
        dependencies.pop("patch-package", None)
        if "@polkadot/extensions-dapp" in dependencies:
            dependencies.pop("@polkadot/extensions-dapp")
            dependencies["@polkadot/extension-dapp"] = FIXED_DEPENDENCIES["@polkadot/extension-dapp"]
        for name in list(dependencies):
            if not name.startswith("@polkadot/"):
                continue
            version = str(dependencies[name])
            if name in POLKADOT_VERSIONS:
                dependencies[name] = POLKADOT_VERSIONS[name]
            elif re.match(r"^[\^~]?11\.", version) or (
                re.match(r"^[\^~]?13\.", version) and name != "@polkadot/keyring"
            ):
                dependencies.pop(name)
        payload["dependencies"] = {**dependencies, **FIXED_DEPENDENCIES}

        dev_dependencies = _object(payload.get("devDependencies"))
        dev_dependencies.pop("patch-package", None)
        payload["devDependencies"] = {**dev_dependencies, **FIXED_DEV_DEPENDENCIES}
        return json.dumps(payload, indent=2)

    return rewrite


def fix_tsconfig(_path: str, content: str) -> str:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        return content
    if not isinstance(payload, dict):
        return content
    options = _object(payload.get("compilerOptions"))
    options["paths"] = {"@/*": ["./*"], **_object(options.get("paths"))}
    options["baseUrl"] = "."
    options["skipLibCheck"] = True
    options["typeRoots"] = ["./node_modules/@types", "./types"]
    payload["compilerOptions"] = options
    include = payload.get("include")
    if not isinstance(include, list):
        include = ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"]
    if "types/**/*.d.ts" not in include:
        include = [*include, "types/**/*.d.ts"]
    payload["include"] = include
    return json.dumps(payload, indent=2)


def fix_next_config(_path: str, content: str) -> str:
    if "defineConfig" in content or re.search(r"from\s+['\"]next['\"]", content):
        return DEFAULT_NEXT_CONFIG
    fixed = re.sub(r"\n?[ \t]*(appDir|serverActions)\s*:\s*\{[^{}]*\},?", "", content)
    fixed = re.sub(r"\n?[ \t]*(appDir|serverActions)\s*:\s*[^,\n}]*,?", "", fixed)
    fixed = re.sub(r"\n?[ \t]*experimental\s*:\s*\{\s*\},?", "", fixed)
    if re.search(r"output\s*:\s*['\"]standalone['\"]", fixed):
        return fixed
    if re.search(r"output\s*:\s*['\"][^'\"]*['\"]", fixed):
        return re.sub(r"output\s*:\s*['\"][^'\"]*['\"]", "output: 'standalone'", fixed, count=1)
    opener = re.search(r"(nextConfig\s*=\s*\{|export\s+default\s*\{|module\.exports\s*=\s*\{)", fixed)
    if opener is None:
        return DEFAULT_NEXT_CONFIG
    return fixed[: opener.end()] + "\n  output: 'standalone'," + fixed[opener.end() :]


# Source files.


_FENCED_BLOCK = re.compile(r"```(?:tsx?|typescript|jsx?)?[ \t]*\n([\s\S]*?)\n```")


def strip_bom(_path: str, content: str) -> str:
    stripped = content.lstrip("\ufeff").strip()
    return f"{stripped}\n" if stripped else stripped


def unwrap_markdown_fence(_path: str, content: str) -> str:
    """Peel nested fences until the text no longer opens with one."""
    text = content.lstrip("\ufeff").strip()
    if not text.startswith("```"):
        return content
    while text.startswith("```"):
        block = _FENCED_BLOCK.match(text)
        if block:
            text = block.group(1)
        else:
            text = re.sub(r"\n?```$", "", re.sub(r"^```\w*\n?", "", text))
        text = text.lstrip("\ufeff").strip()
    return text


def quote_use_client(_path: str, content: str) -> str:
    if _has_client_directive(content) or not content.lstrip().startswith("use client"):
        return content
    return re.sub(r"^\s*use client[ \t]*;?", '"use client";', content, count=1)


_REACT_QUERY_IMPORT = re.compile(r"import\s+([^'\";]+?)\s+from\s+['\"]@tanstack/react-query['\"];?")


def redirect_react_query_imports(_path: str, content: str) -> str:
    def replace(match: re.Match[str]) -> str:
        clause = match.group(1).strip()
        if "useQuery" not in clause or clause.startswith(("type ", "*")):
            return match.group(0)
        default_import, named_block = "", ""
        if clause.startswith("{") and clause.endswith("}"):
            named_block = clause[1:-1]
        else:
            combo = re.match(r"^([^,{]+),\s*\{([\s\S]*)\}$", clause)
            if combo:
                default_import, named_block = combo.group(1).strip(), combo.group(2)
            else:
                default_import = clause
        if not named_block:
            return match.group(0)

        compat: list[str] = []
        remaining: list[str] = []
        for spec in (part.strip() for part in named_block.split(",")):
            if not spec:
                continue
            base = re.split(r"\s+as\s+", spec)[0].strip()
            (compat if base == "useQuery" else remaining).append(spec)
        if not compat:
            return match.group(0)

        segments: list[str] = []
        if default_import and default_import != "useQuery":
            segments.append(default_import)
        elif default_import == "useQuery":
            compat.append("useQuery")
        if remaining:
            segments.append("{ " + ", ".join(remaining) + " }")

        lines: list[str] = []
        if segments:
            lines.append(f"import {', '.join(segments)} from '@tanstack/react-query';")
        lines.append(f"import {{ {', '.join(compat)} }} from '@/lib/reactQueryCompat';")
        return "\n".join(lines)

    return _REACT_QUERY_IMPORT.sub(replace, content)


_HOT_TOAST_IMPORT = re.compile(
    r"import\s+(?:(\w+)\s*,\s*)?(?:\{([^}]*)\}\s*)?from\s+['\"]react-hot-toast['\"];?"
)


def replace_hot_toast(_path: str, content: str) -> str:
    def replace(match: re.Match[str]) -> str:
        specifiers: dict[str, str] = {}
        default_import, named_block = match.group(1), match.group(2)
        if default_import:
            specifiers["toast"] = default_import.strip()
        for raw in (named_block or "").split(","):
            parts = [part.strip() for part in re.split(r"\s+as\s+", raw.strip(), flags=re.IGNORECASE)]
            if parts and parts[0]:
                specifiers[parts[0]] = parts[1] if len(parts) > 1 and parts[1] else parts[0]
        if not specifiers:
            specifiers["toast"] = "toast"
        rendered = ", ".join(name if name == alias else f"{name} as {alias}" for name, alias in specifiers.items())
        return f"import {{ {rendered} }} from 'sonner'"

    return _HOT_TOAST_IMPORT.sub(replace, content)


def redirect_preference_store(_path: str, content: str) -> str:
    for module in _PREFERENCE_STORE_MODULES:
        content = re.sub(
            rf"from\s+['\"]@/lib/store/{module}['\"]",
            "from '@/hooks/usePreferenceStore'",
            content,
        )
    return re.sub(r"from\s+['\"]@/lib/store['\"]", "from '@/hooks/usePreferenceStore'", content)


def object_form_use_query(_path: str, content: str) -> str:
    return re.sub(
        r"useQuery\s*<([^>]+)>\s*\(\s*\[([^\]]*)\]\s*,\s*([^)]+?)\)",
        lambda m: f"useQuery<{m.group(1)}>({{ queryKey: [{m.group(2)}], queryFn: {m.group(3).strip()} }})",
        content,
    )


def link_legacy_behavior(_path: str, content: str) -> str:
    def replace(match: re.Match[str]) -> str:
        attrs, inner = match.group(1), match.group(2)
        if "legacyBehavior" in attrs or not re.search(r"<a[\s>]", inner, re.IGNORECASE):
            return match.group(0)
        return f"<Link{attrs.rstrip()} legacyBehavior>{inner}</Link>"

    return re.sub(r"<Link([^>]*?)>([\s\S]*?)</Link>", replace, content)


def strip_app_href_prefix(_path: str, content: str) -> str:
    content = re.sub(r'href\s*=\s*"/app/', 'href="/', content)
    return re.sub(r"href\s*=\s*'/app/", "href='/", content)


def named_prisma_import(_path: str, content: str) -> str:
    return re.sub(r"import\s+prisma\s+from\s+['\"]@/lib/prisma['\"]", "import { prisma } from '@/lib/prisma'", content)


def collapse_import_braces(_path: str, content: str) -> str:
    content = re.sub(r"\}\s+\}\s+from", "} from", content)
    return re.sub(r"\}\}\s+from", "} from", content)


def type_callback_params(_path: str, content: str) -> str:
    content = re.sub(rf"\.({_CALLBACK_METHODS})\(\((\w+)\)\s*=>", r".\1((\2: any) =>", content)
    return re.sub(rf"\.({_CALLBACK_METHODS})\((\w+)\s*=>", r".\1((\2: any) =>", content)


def guard_session_user(_path: str, content: str) -> str:
    content = re.sub(r"(?<![\w$])session\.user\.", "session?.user?.", content)
    return re.sub(r"(?<![\w$])session\.user\b", "session?.user", content)


def cast_session_user_id(_path: str, content: str) -> str:
    return re.sub(r"session\?\.user\?\.id\b", "(session?.user as any)?.id", content)


def drop_ts_css_imports(_path: str, content: str) -> str:
    return re.sub(r"import\s+['\"][^'\"]*\.css['\"];?[ \t]*\n?", "", content)


def fix_globals_css_path(_path: str, content: str) -> str:
    content = content.replace("@/styles/globals.css", "@/app/globals.css")
    content = content.replace("./styles/globals.css", "./globals.css")
    return re.sub(r"(['\"])(?:\.\./)*styles/globals\.css", r"\1@/app/globals.css", content)


def ensure_root_layout(_path: str, content: str) -> str:
    if GLOBALS_IMPORT not in content:
        directive = re.match(r"^([\"']use client[\"'];?\s*\n)", content)
        if directive:
            content = directive.group(1) + GLOBALS_IMPORT + "\n" + content[directive.end() :]
        else:
            content = f"{GLOBALS_IMPORT}\n{content}"

    if "AppProviders" in content:
        content = re.sub(r"^[\"']use client[\"'];?\s*\n", "", content)
        content = re.sub(
            r"import\s*\{[^}]*PolkadotUIProvider[^}]*\}\s*from\s*['\"]@/providers/PolkadotUIProvider['\"];?\s*\n?",
            "",
            content,
        )
        return re.sub(r"<PolkadotUIProvider>\s*([\s\S]*?)\s*</PolkadotUIProvider>", r"\1", content)

    if not _has_client_directive(content):
        content = f'"use client"\n{content}'
    if "PolkadotUIProvider" not in content:
        content = re.sub(
            r"^([\"']use client[\"'];?\s*\n)",
            r"\1import { PolkadotUIProvider } from '@/providers/PolkadotUIProvider'\n",
            content,
            count=1,
        )
    if "<PolkadotUIProvider" not in content:
        content = re.sub(
            r"(<body[^>]*>)([\s\S]*?)(</body>)",
            lambda m: f"{m.group(1)}\n        <PolkadotUIProvider>\n{m.group(2)}\n        </PolkadotUIProvider>\n      {m.group(3)}",
            content,
            count=1,
        )
    return content


def fix_polkadot_ui_imports(_path: str, content: str) -> str:
    if re.search(
        r"import\s+\{\s*RequireAccount\b[^}]*\}\s+from\s+['\"]@/components/polkadot-ui/RequireConnection['\"]",
        content,
    ):
        content = re.sub(
            r"from\s+['\"]@/components/polkadot-ui/RequireConnection['\"]",
            "from '@/components/polkadot-ui/RequireAccount'",
            content,
        )
    content = re.sub(
        r"import\s+TxNotification\s+from\s+(['\"]@/components/polkadot-ui(?:/TxNotification)?['\"])",
        r"import { TxNotification } from \1",
        content,
    )

    def split_hook(match: re.Match[str]) -> str:
        specifiers = [part.strip() for part in match.group(1).split(",") if part.strip()]
        if "usePolkadotUI" not in specifiers:
            return match.group(0)
        rest = [spec for spec in specifiers if spec != "usePolkadotUI"]
        lines = []
        if rest:
            lines.append(f"import {{ {', '.join(rest)} }} from '@/components/polkadot-ui'")
        lines.append("import { usePolkadotUI } from '@/hooks/usePolkadotUI'")
        return "\n".join(lines)

    return re.sub(r"import\s*\{([^}]*)\}\s*from\s*['\"]@/components/polkadot-ui['\"];?", split_hook, content)


def ensure_client_directive(path: str, content: str) -> str:
    if _has_client_directive(content) or not any(marker in content for marker in CLIENT_MARKERS):
        return content
    if _is_root_layout(path) and "AppProviders" in content:
        return content
    if any(hook in content for hook in ("useSearchParams", "useRouter", "useState")):
        content = re.sub(r"export\s+default\s+async\s+function", "export default function", content)
        content = re.sub(r"export\s+async\s+function", "export function", content)
    return '"use client";\n' + content


def harden_local_storage(_path: str, content: str) -> str:
    return re.sub(
        r"getStorage:\s*\(\)\s*=>\s*localStorage\b",
        "getStorage: () => (typeof window !== 'undefined' ? window.localStorage : {\n"
        "        getItem: () => null,\n"
        "        setItem: () => undefined,\n"
        "        removeItem: () => undefined,\n"
        "      })",
        content,
    )


def repair_trailing_braces(_path: str, content: str) -> str:
    missing = content.count("{") - content.count("}")
    if missing <= 0:
        return content
    return content.rstrip() + "\n" + "}\n" * missing


def ensure_trailing_newline(_path: str, content: str) -> str:
    return content.rstrip("\n") + "\n"


def default_rules(*, port: int) -> list[RewriteRule]:
    """The full batch, in application order, for a workspace served on ``port``."""
    return [
        RewriteRule("package_json_pins", lambda p: _basename(p) == "package.json", pin_package_json(port)),
        RewriteRule("tsconfig_aliases", lambda p: _basename(p) == "tsconfig.json", fix_tsconfig),
        RewriteRule("next_config", lambda p: _basename(p).startswith("next.config"), fix_next_config),
        RewriteRule("markdown_fence", _is_source, unwrap_markdown_fence),
        RewriteRule("strip_bom", _is_source, strip_bom),
        RewriteRule("quote_use_client", _is_source, quote_use_client),
        RewriteRule("react_query_compat", _not_compat, redirect_react_query_imports),
        RewriteRule("hot_toast_to_sonner", _not_compat, replace_hot_toast),
        RewriteRule("legacy_use_query", _not_compat, object_form_use_query),
        RewriteRule("preference_store", _is_source, redirect_preference_store),
        RewriteRule("link_legacy_behavior", _is_source, link_legacy_behavior),
        RewriteRule("app_href_prefix", _is_source, strip_app_href_prefix),
        RewriteRule("prisma_named_import", _is_source, named_prisma_import),
        RewriteRule("import_braces", _is_source, collapse_import_braces),
        RewriteRule("callback_any", _is_source, type_callback_params),
        RewriteRule("session_guard", _is_source, guard_session_user),
        RewriteRule("session_id_cast", _is_source, cast_session_user_id),
        RewriteRule("ts_css_imports", _is_plain_ts, drop_ts_css_imports),
        RewriteRule("globals_css_path", _is_tsx, fix_globals_css_path),
        RewriteRule("root_layout", _is_root_layout, ensure_root_layout),
        RewriteRule("polkadot_ui_imports", _is_source, fix_polkadot_ui_imports),
        RewriteRule("client_directive", _is_tsx, ensure_client_directive),
        RewriteRule("local_storage", _is_source, harden_local_storage),
        RewriteRule("trailing_braces", _is_source, repair_trailing_braces),
        RewriteRule("trailing_newline", _is_source, ensure_trailing_newline),
    ]


def apply_rules(path: str, content: str, rules: list[RewriteRule]) -> tuple[str, list[str]]:
    """Run the batch until a pass changes nothing; return the text plus the names that changed it.

    A rewrite can expose input for an earlier rule (a fence inside a fence), so
    one pass is not always a fixed point.
    """
    applied: list[str] = []
    for _ in range(MAX_PASSES):
        changed = False
        for rule in rules:
            if not rule.applies(path):
                continue
            rewritten = rule.rewrite(path, content)
            if rewritten != content:
                changed = True
                content = rewritten
                if rule.name not in applied:
                    applied.append(rule.name)
        if not changed:
            break
    else:
        logger.warning("normalize event=rules_unsettled path=%s passes=%s", path, MAX_PASSES)
    if applied:
        logger.debug("normalize event=rules_applied path=%s rules=%s", path, ",".join(applied))
    return content, applied


def _object(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}
