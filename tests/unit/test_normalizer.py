import json

from preview_orchestrator.build.models import GeneratedFile, ProjectContext
from preview_orchestrator.build.normalizer import dependency_manifest, normalize_files, strip_signin_page
from preview_orchestrator.build.rules import apply_rules, default_rules, fix_next_config, pin_package_json

MESSY_PAGE = (
    "\ufeff```tsx\n"
    "use client\n"
    "import { toast } from 'react-hot-toast'\n"
    "import { useQuery } from '@tanstack/react-query'\n"
    "export default function MarketPage() {\n"
    "  const q = useQuery<Item[]>(['items'], fetchItems)\n"
    "  const ids = items.map(item => item.id)\n"
    "  const name = session.user.name\n"
    "  return <Link href=\"/app/market\"><a>{name}</a></Link>\n"
    "}\n"
    "```"
)


def test_rules_are_idempotent() -> None:
    rules = default_rules(port=3042)
    once, applied = apply_rules("app/(app)/market/page.tsx", MESSY_PAGE, rules)
    twice, applied_again = apply_rules("app/(app)/market/page.tsx", once, rules)

    assert applied
    assert applied_again == []
    assert twice == once
    assert once.startswith('"use client";\n')
    assert "```" not in once
    assert "import { toast } from 'sonner'" in once
    assert "import { useQuery } from '@/lib/reactQueryCompat';" in once
    assert "useQuery<Item[]>({ queryKey: ['items'], queryFn: fetchItems })" in once
    assert ".map((item: any) =>" in once
    assert "session?.user?.name" in once
    assert 'href="/market" legacyBehavior' in once


def test_nested_fences_and_fenced_bom_settle_in_one_batch() -> None:
    rules = default_rules(port=3001)
    for raw in (
        "```\n```tsx\nexport const a = 1\n```\n```",
        "```ts\n\ufeffexport const a = 1\n```",
        "\ufeff```\n```\nexport const a = 1\n```",
    ):
        once, _ = apply_rules("lib/a.ts", raw, rules)
        twice, applied_again = apply_rules("lib/a.ts", once, rules)

        assert once == "export const a = 1\n"
        assert (twice, applied_again) == (once, [])


def test_every_normalized_file_is_a_fixed_point() -> None:
    files = [
        GeneratedFile(path="app/(app)/market/page.tsx", content=MESSY_PAGE),
        GeneratedFile(path="lib/a.ts", content="```\n```tsx\nimport './styles.css'\nexport const a = session.user.id\n```\n```"),
        GeneratedFile(path="app/signin/page.tsx", content="export default function S() { return <form><input name=\"email\" /></form> }"),
        GeneratedFile(path="tsconfig.json", content='{"compilerOptions": {}}'),
        GeneratedFile(path="next.config.js", content="module.exports = { experimental: { appDir: true } }"),
    ]
    result = normalize_files("p1", files, _context(), port=3042)
    rules = default_rules(port=3042)

    for item in result.files:
        again, applied = apply_rules(item.path, item.content, rules)
        assert (item.path, again, applied) == (item.path, item.content, [])


def test_session_user_access_is_guarded() -> None:
    content, _ = apply_rules(
        "lib/auth.ts",
        "const id = session.user.id\nconst user = session.user\nconst other = mysession.user\n",
        default_rules(port=3001),
    )
    assert content == (
        "const id = (session?.user as any)?.id\n"
        "const user = session?.user\n"
        "const other = mysession.user\n"
    )


def test_missing_closing_braces_are_appended() -> None:
    content, applied = apply_rules("lib/a.ts", "export function a() {\n  if (x) {\n    return 1\n", default_rules(port=3001))
    assert content.count("{") == content.count("}")
    assert "trailing_braces" in applied


def test_package_json_pins_scripts_and_versions() -> None:
    raw = json.dumps(
        {
            "scripts": {"postinstall": "patch-package", "dev": "next dev"},
            "dependencies": {
                "@polkadot/extensions-dapp": "^0.46.0",
                "@polkadot/api-contract": "^11.0.0",
                "patch-package": "^8.0.0",
                "date-fns": "^2.30.0",
            },
        }
    )
    payload = json.loads(pin_package_json(3042)("package.json", raw))

    assert payload["scripts"]["dev"] == "next dev -p 3042"
    assert payload["scripts"]["start"] == "next start -p 3042"
    assert "postinstall" not in payload["scripts"]
    dependencies = payload["dependencies"]
    assert "@polkadot/extensions-dapp" not in dependencies
    assert "@polkadot/api-contract" not in dependencies
    assert "patch-package" not in dependencies
    assert dependencies["@polkadot/extension-dapp"] == "^0.47.2"
    assert dependencies["date-fns"] == "^2.30.0"
    assert payload["devDependencies"]["typescript"] == "^5.6.3"


def test_next_config_drops_experimental_and_forces_standalone() -> None:
    fixed = fix_next_config("next.config.js", "module.exports = {\n  experimental: { appDir: true },\n}\n")
    assert "appDir" not in fixed
    assert "experimental" not in fixed
    assert "output: 'standalone'" in fixed
    assert fix_next_config("next.config.js", fixed) == fixed


def _context() -> ProjectContext:
    return ProjectContext(title="Foo Marketplace", prompt="a marketplace called Foo", spec_markdown="# Foo")


def test_normalize_injects_templates_and_drops_unsupported_files() -> None:
    files = [
        GeneratedFile(path="package.json", content='{"name": "mine"}'),
        GeneratedFile(path="./app/(app)/market/page.tsx", content="export default function P() { return null }"),
        GeneratedFile(path="app/api/items/route.ts", content="export async function GET() {}"),
        GeneratedFile(path="prisma/schema.prisma", content="model Item {}"),
        GeneratedFile(path="src/components/polkadot-ui/TxButton.tsx", content="export {}"),
        GeneratedFile(path="app/signup/page.tsx", content="export default function S() { return null }"),
        GeneratedFile(path=".env", content="DATABASE_URL=postgres://secret"),
    ]
    result = normalize_files("3f2c9a4e-7b1d-4c55", files, _context(), port=3042)

    assert set(result.dropped) == {
        "package.json",
        "app/api/items/route.ts",
        "prisma/schema.prisma",
        "src/components/polkadot-ui/TxButton.tsx",
        "app/signup/page.tsx",
    }
    package = json.loads(result.content_of("package.json") or "{}")
    assert package["name"] == "3f2c9a4e-7b1d-4c55"
    assert package["scripts"]["dev"] == "next dev -p 3042"
    assert "app/(app)/market/page.tsx" in result.paths()
    assert "app/layout.tsx" in result.paths()
    assert "lib/projectConfig.ts" in result.paths()

    env = result.content_of(".env") or ""
    assert "secret" not in env
    assert "PORT=3042" in env


def test_dependency_manifest_is_port_independent() -> None:
    files = [GeneratedFile(path="app/(app)/market/page.tsx", content="export default function P() { return null }")]
    first = normalize_files("p1", files, _context(), port=3001)
    second = normalize_files("p1", files, _context(), port=3099)

    assert first.content_of("package.json") != second.content_of("package.json")
    assert first.manifest == second.manifest
    manifest = json.loads(first.manifest)
    assert manifest["name"] == "draft-dependency-cache"
    assert "scripts" not in manifest
    assert manifest["dependencies"]["next"] == "^14.2.6"


def test_dependency_manifest_passes_through_invalid_json() -> None:
    assert dependency_manifest("not json") == "not json"


def test_signin_page_keeps_wallet_flow_only() -> None:
    page = (
        "import GoogleSignInButton from '@/components/GoogleSignInButton'\n"
        "import { ConnectWallet } from '@/components/polkadot-ui'\n"
        "<form onSubmit={submit}><input name=\"email\" /><input name=\"password\" /></form>\n"
        "<ConnectWallet />\n"
    )
    stripped = strip_signin_page(page)
    assert "GoogleSignInButton" not in stripped
    assert "<form" not in stripped
    assert "<ConnectWallet />" in stripped
