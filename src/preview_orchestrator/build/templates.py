"""Platform-owned files injected into every draft workspace.

Generated code may not replace any of these paths; the normalizer drops
generated duplicates and writes the template instead.
"""

from __future__ import annotations

import copy
import json
import re
from typing import Any

PROJECT_CONFIG_PATH = "lib/projectConfig.ts"
PROJECT_CONFIG_SPLIT_TOKEN = "export const projectConfig: ProjectConfig = "

FIXED_DEPENDENCIES: dict[str, str] = {
    "next": "^14.2.6",
    "react": "^18.3.1",
    "react-dom": "^18.3.1",
    "@polkadot/api": "^10.13.1",
    "@polkadot/types": "^10.13.1",
    "@polkadot/extension-dapp": "^0.47.2",
    "@polkadot/util": "^12.6.2",
    "@polkadot/util-crypto": "^12.6.2",
    "@polkadot/keyring": "^13.5.7",
    "@tanstack/react-query": "^5.59.1",
    "class-variance-authority": "^0.7.0",
    "framer-motion": "^11.5.5",
    "lucide-react": "^0.453.0",
    "sonner": "^1.5.0",
    "zustand": "^4.5.4",
    "assert": "^2.0.0",
    "buffer": "^6.0.3",
    "crypto-browserify": "^3.12.0",
    "stream-browserify": "^3.0.0",
    "util": "^0.12.5",
    "process": "^0.11.10",
}

FIXED_DEV_DEPENDENCIES: dict[str, str] = {
    "typescript": "^5.6.3",
    "@types/node": "^20.12.12",
    "@types/react": "^18.3.3",
    "@types/react-dom": "^18.3.0",
    "autoprefixer": "^10.4.20",
    "postcss": "^8.4.49",
    "tailwindcss": "^3.4.13",
    "eslint": "^8.57.0",
    "eslint-config-next": "^14.2.6",
}

# Allow-listed @polkadot/* lines known to resolve together.
POLKADOT_VERSIONS: dict[str, str] = {
    "@polkadot/api": "^10.13.1",
    "@polkadot/types": "^10.13.1",
    "@polkadot/types-codec": "^10.13.1",
    "@polkadot/util": "^12.6.2",
    "@polkadot/util-crypto": "^12.6.2",
    "@polkadot/keyring": "^13.5.7",
    "@polkadot/extension-dapp": "^0.47.2",
}

PACKAGE_JSON: dict[str, Any] = {
    "name": "{{PROJECT_NAME}}",
    "version": "1.0.0",
    "private": True,
    "scripts": {
        "dev": "next dev",
        "build": "next build",
        "start": "next start",
        "lint": "next lint",
    },
    "dependencies": {**FIXED_DEPENDENCIES, "date-fns": "^2.30.0"},
    "devDependencies": dict(FIXED_DEV_DEPENDENCIES),
}

TSCONFIG_JSON: dict[str, Any] = {
    "compilerOptions": {
        "target": "ES2020",
        "lib": ["ES2020", "DOM", "DOM.Iterable"],
        "jsx": "preserve",
        "module": "esnext",
        "moduleResolution": "bundler",
        "resolveJsonModule": True,
        "allowJs": True,
        "noEmit": True,
        "esModuleInterop": True,
        "isolatedModules": True,
        "incremental": True,
        "strict": True,
        "skipLibCheck": True,
        "plugins": [{"name": "next"}],
        "paths": {"@/*": ["./*"]},
        "baseUrl": ".",
        "typeRoots": ["./node_modules/@types", "./types"],
    },
    "include": [
        "next-env.d.ts",
        "**/*.ts",
        "**/*.tsx",
        ".next/types/**/*.ts",
        "types/**/*.d.ts",
    ],
    "exclude": ["node_modules"],
}

DEFAULT_NEXT_CONFIG = """/** @type {import('next').NextConfig} */
const nextConfig = {
  output: 'standalone',
}

export default nextConfig
"""

DEFAULT_LAYOUT = """import '@/app/globals.css'
import { Inter } from 'next/font/google'

const inter = Inter({ subsets: ['latin'] })

export default function RootLayout({
  children,
}: {
  children: React.ReactNode
}) {
  return (
    <html lang="en">
      <body className={inter.className}>{children}</body>
    </html>
  )
}
"""

PROJECT_CONFIG_HEADER = """export type ProjectIcon = 'overview' | 'activity' | 'marketplace' | 'settings' | 'custom'

export type ProjectFeature = {
  title: string
  description: string
  href?: string
}

export type ProjectSection = {
  href: string
  label: string
  description: string
  icon?: ProjectIcon
}

export type ProjectConfig = {
  name: string
  shortName: string
  summary: string
  hero: {
    eyebrow?: string
    title: string
    subtitle?: string
    primaryCta?: { href: string; label: string }
    secondaryCta?: { href?: string; label?: string }
  }
  features: ProjectFeature[]
  app: {
    entryPath: string
    sections: ProjectSection[]
  }
  keywords: string[]
  themeColor?: string
}

"""

_TEXT_TEMPLATES: dict[str, str] = {
    "next.config.mjs": DEFAULT_NEXT_CONFIG,
    "tailwind.config.ts": """import type { Config } from 'tailwindcss'

const config: Config = {
  content: [
    './app/**/*.{ts,tsx}',
    './components/**/*.{ts,tsx}',
    './providers/**/*.{ts,tsx}',
  ],
  theme: {
    extend: {},
  },
  plugins: [],
}

export default config
""",
    "postcss.config.js": """module.exports = {
  plugins: {
    tailwindcss: {},
    autoprefixer: {},
  },
}
""",
    "app/globals.css": """@tailwind base;
@tailwind components;
@tailwind utilities;

:root {
  --foreground-rgb: 15, 23, 42;
  --background-rgb: 248, 250, 252;
}

body {
  color: rgb(var(--foreground-rgb));
  background: rgb(var(--background-rgb));
}
""",
    "app/layout.tsx": """import '@/app/globals.css'
import type { Metadata } from 'next'
import type { ReactNode } from 'react'
import { AppProviders } from '@/providers/AppProviders'
import { projectConfig } from '@/lib/projectConfig'

export const metadata: Metadata = {
  title: projectConfig.name,
  description: projectConfig.summary,
  keywords: projectConfig.keywords,
}

export default function RootLayout({ children }: { children: ReactNode }) {
  return (
    <html lang="en">
      <body>
        <AppProviders>{children}</AppProviders>
      </body>
    </html>
  )
}
""",
    "app/page.tsx": """import { projectConfig } from '@/lib/projectConfig'
import type { ProjectFeature } from '@/lib/projectConfig'
import { NetworkHealth } from '@/components/charts/NetworkHealth'

export default function HomePage() {
  const { hero, features } = projectConfig
  return (
    <main className="mx-auto max-w-5xl px-6 py-16">
      <p className="text-sm uppercase tracking-wide text-violet-600">{hero.eyebrow}</p>
      <h1 className="mt-2 text-4xl font-bold">{hero.title}</h1>
      <p className="mt-4 text-lg text-slate-600">{hero.subtitle}</p>
      {hero.primaryCta ? (
        <a className="mt-8 inline-block rounded bg-violet-600 px-4 py-2 text-white" href={hero.primaryCta.href}>
          {hero.primaryCta.label}
        </a>
      ) : null}
      <section className="mt-12 grid gap-4 md:grid-cols-2">
        {features.map((feature: ProjectFeature) => (
          <article key={feature.title} className="rounded border p-4">
            <h2 className="font-semibold">{feature.title}</h2>
            <p className="text-sm text-slate-600">{feature.description}</p>
          </article>
        ))}
      </section>
      <section id="network" className="mt-12">
        <NetworkHealth />
      </section>
    </main>
  )
}
""",
    "app/experience/page.tsx": """import { AppShell } from '@/components/layout/AppShell'
import { WalletPanel } from '@/components/wallet/WalletPanel'
import { TxHistoryTable } from '@/components/wallet/TxHistoryTable'

export default function ExperiencePage() {
  return (
    <AppShell>
      <WalletPanel />
      <TxHistoryTable />
    </AppShell>
  )
}
""",
    "providers/AppProviders.tsx": """"use client"
import { useState } from 'react'
import type { ReactNode } from 'react'
import { QueryClient, QueryClientProvider } from '@tanstack/react-query'
import { Toaster } from 'sonner'
import { PolkadotUIProvider } from '@/providers/PolkadotUIProvider'

export function AppProviders({ children }: { children: ReactNode }) {
  const [queryClient] = useState(() => new QueryClient())
  return (
    <QueryClientProvider client={queryClient}>
      <PolkadotUIProvider>
        {children}
        <Toaster richColors />
      </PolkadotUIProvider>
    </QueryClientProvider>
  )
}
""",
    "providers/PreferenceStore.ts": """import { create } from 'zustand'
import { createJSONStorage, persist } from 'zustand/middleware'

export type ThemeMode = 'light' | 'dark'

export type PreferenceState = {
  theme: ThemeMode
  selectedChainKey: string
  favoriteAccounts: string[]
  setTheme: (mode: ThemeMode) => void
  setSelectedChainKey: (key: string) => void
  toggleFavoriteAccount: (address: string) => void
}

const memoryStorage = {
  getItem: () => null,
  setItem: () => undefined,
  removeItem: () => undefined,
}

export const usePreferenceStore = create<PreferenceState>()(
  persist(
    (set, get) => ({
      theme: 'light',
      selectedChainKey: 'polkadot',
      favoriteAccounts: [],
      setTheme: (mode: ThemeMode) => set({ theme: mode }),
      setSelectedChainKey: (key: string) => set({ selectedChainKey: key }),
      toggleFavoriteAccount: (address: string) => {
        const current = get().favoriteAccounts
        const next = current.includes(address)
          ? current.filter((value: string) => value !== address)
          : [...current, address]
        set({ favoriteAccounts: next })
      },
    }),
    {
      name: 'draft-preferences',
      storage: createJSONStorage(() => (typeof window !== 'undefined' ? window.localStorage : memoryStorage)),
    },
  ),
)
""",
    "providers/PolkadotUIProvider.tsx": """"use client"
import { createContext, useCallback, useContext, useEffect, useMemo, useState } from 'react'
import type { ReactNode } from 'react'
import { DEFAULT_CHAIN } from '@/lib/chains'

export type InjectedAccount = {
  address: string
  name?: string
}

type PolkadotUIContextValue = {
  accounts: InjectedAccount[]
  selectedAccount: InjectedAccount | null
  status: 'disconnected' | 'connecting' | 'connected'
  endpoint: string
  connect: () => Promise<void>
  disconnect: () => void
  selectAccount: (address: string) => void
}

const PolkadotUIContext = createContext<PolkadotUIContextValue | null>(null)

export function PolkadotUIProvider({ children }: { children: ReactNode }) {
  const [accounts, setAccounts] = useState<InjectedAccount[]>([])
  const [selectedAccount, setSelectedAccount] = useState<InjectedAccount | null>(null)
  const [status, setStatus] = useState<PolkadotUIContextValue['status']>('disconnected')

  const connect = useCallback(async () => {
    setStatus('connecting')
    try {
      const { web3Accounts, web3Enable } = await import('@polkadot/extension-dapp')
      await web3Enable(DEFAULT_CHAIN.appName)
      const injected = await web3Accounts()
      const mapped = injected.map((account: any) => ({ address: account.address, name: account.meta?.name }))
      setAccounts(mapped)
      setSelectedAccount(mapped[0] ?? null)
      setStatus(mapped.length ? 'connected' : 'disconnected')
    } catch (error) {
      console.warn('Wallet connection failed', error)
      setStatus('disconnected')
    }
  }, [])

  const disconnect = useCallback(() => {
    setAccounts([])
    setSelectedAccount(null)
    setStatus('disconnected')
  }, [])

  const selectAccount = useCallback(
    (address: string) => {
      setSelectedAccount(accounts.find((account: InjectedAccount) => account.address === address) ?? null)
    },
    [accounts],
  )

  useEffect(() => {
    setStatus('disconnected')
  }, [])

  const value = useMemo(
    () => ({ accounts, selectedAccount, status, endpoint: DEFAULT_CHAIN.endpoint, connect, disconnect, selectAccount }),
    [accounts, selectedAccount, status, connect, disconnect, selectAccount],
  )

  return <PolkadotUIContext.Provider value={value}>{children}</PolkadotUIContext.Provider>
}

export function usePolkadotUIContext(): PolkadotUIContextValue {
  const context = useContext(PolkadotUIContext)
  if (!context) {
    throw new Error('usePolkadotUIContext must be used inside PolkadotUIProvider')
  }
  return context
}
""",
    "lib/reactQueryCompat.ts": """import { useQuery as useTanstackQuery } from '@tanstack/react-query'
import type { QueryKey, UseQueryOptions, UseQueryResult } from '@tanstack/react-query'

export function useQuery<TData = unknown, TError = Error>(
  options: UseQueryOptions<TData, TError, TData, QueryKey>,
): UseQueryResult<TData, TError> {
  return useTanstackQuery<TData, TError, TData, QueryKey>(options)
}
""",
    "lib/examples/useReactQueryExample.ts": """import { useQuery } from '@/lib/reactQueryCompat'

export function useLatestBlockExample(fetchBlock: () => Promise<number>) {
  return useQuery<number>({ queryKey: ['latest-block'], queryFn: fetchBlock })
}
""",
    "lib/chains.ts": """export type ChainConfig = {
  key: string
  name: string
  endpoint: string
  unit: string
  decimals: number
  appName: string
}

export const DEFAULT_CHAIN: ChainConfig = {
  key: 'polkadot',
  name: process.env.NEXT_PUBLIC_POLKADOT_CHAIN || 'Polkadot',
  endpoint: process.env.NEXT_PUBLIC_POLKADOT_ENDPOINT || 'wss://rpc.polkadot.io',
  unit: process.env.NEXT_PUBLIC_POLKADOT_UNIT || 'DOT',
  decimals: Number(process.env.NEXT_PUBLIC_POLKADOT_DECIMALS || '10'),
  appName: process.env.NEXT_PUBLIC_APP_NAME || 'Draft',
}

export const CHAINS: ChainConfig[] = [DEFAULT_CHAIN]
""",
    "lib/tx/submit.ts": """export type TxStatus = 'pending' | 'in-block' | 'finalized' | 'failed'

export type TxRecord = {
  id: string
  label: string
  status: TxStatus
  createdAt: number
}

export async function submitTx(label: string, send: () => Promise<void>): Promise<TxRecord> {
  const record: TxRecord = { id: `${Date.now()}`, label, status: 'pending', createdAt: Date.now() }
  try {
    await send()
    return { ...record, status: 'finalized' }
  } catch (error) {
    console.warn('Transaction failed', error)
    return { ...record, status: 'failed' }
  }
}
""",
    "hooks/usePolkadotUI.ts": """import { usePolkadotUIContext } from '@/providers/PolkadotUIProvider'

export function usePolkadotUI() {
  return usePolkadotUIContext()
}
""",
    "hooks/usePreferenceStore.ts": """export { usePreferenceStore } from '@/providers/PreferenceStore'
export type { PreferenceState, ThemeMode } from '@/providers/PreferenceStore'
""",
    "components/layout/NavItems.ts": """import { projectConfig } from '@/lib/projectConfig'
import type { ProjectSection } from '@/lib/projectConfig'

export type NavItem = {
  title: string
  description: string
  href: string
}

export const NAV_ITEMS: NavItem[] = projectConfig.app.sections.map((section: ProjectSection) => ({
  title: section.label,
  description: section.description,
  href: section.href,
}))
""",
    "components/layout/AppShell.tsx": """import type { ReactNode } from 'react'
import { NAV_ITEMS } from '@/components/layout/NavItems'
import type { NavItem } from '@/components/layout/NavItems'
import { ConnectWallet, NetworkIndicator } from '@/components/polkadot-ui'
import { projectConfig } from '@/lib/projectConfig'

export function AppShell({ children }: { children: ReactNode }) {
  return (
    <div className="min-h-screen">
      <header className="flex items-center justify-between border-b px-6 py-4">
        <span className="font-semibold">{projectConfig.shortName}</span>
        <nav className="flex gap-4 text-sm">
          {NAV_ITEMS.map((item: NavItem) => (
            <a key={item.href} href={item.href}>
              {item.title}
            </a>
          ))}
        </nav>
        <div className="flex items-center gap-3">
          <NetworkIndicator />
          <ConnectWallet />
        </div>
      </header>
      <main className="mx-auto grid max-w-5xl gap-6 px-6 py-10">{children}</main>
    </div>
  )
}
""",
    "components/ui/card.tsx": """import type { ReactNode } from 'react'

export function Card({ title, children }: { title?: string; children: ReactNode }) {
  return (
    <section className="rounded-lg border bg-white p-5 shadow-sm">
      {title ? <h2 className="mb-3 font-semibold">{title}</h2> : null}
      {children}
    </section>
  )
}
""",
    "components/ui/tabs.tsx": """"use client"
import { useState } from 'react'
import type { ReactNode } from 'react'

export type TabItem = {
  value: string
  label: string
  content: ReactNode
}

export function Tabs({ items, initial }: { items: TabItem[]; initial?: string }) {
  const [value, setValue] = useState(initial ?? items[0]?.value ?? '')
  const active = items.find((item: TabItem) => item.value === value)
  return (
    <div>
      <div className="flex gap-2 border-b">
        {items.map((item: TabItem) => (
          <button
            key={item.value}
            type="button"
            className={item.value === value ? 'border-b-2 border-violet-600 px-3 py-2' : 'px-3 py-2'}
            onClick={() => setValue(item.value)}
          >
            {item.label}
          </button>
        ))}
      </div>
      <div className="pt-4">{active?.content}</div>
    </div>
  )
}
""",
    "components/forms/MintNftForm.tsx": """"use client"
import { useState } from 'react'
import { toast } from 'sonner'
import { TxButton } from '@/components/polkadot-ui'
import { Card } from '@/components/ui/card'

export function MintNftForm() {
  const [name, setName] = useState('')
  return (
    <Card title="Mint">
      <input
        className="w-full rounded border px-3 py-2"
        placeholder="Asset name"
        value={name}
        onChange={(event) => setName(event.target.value)}
      />
      <TxButton label="Mint" disabled={!name} onSubmit={async () => toast.success(`Minted ${name}`)} />
    </Card>
  )
}
""",
    "components/wallet/WalletPanel.tsx": """"use client"
import { AccountInfo, BalanceDisplay, RequireAccount } from '@/components/polkadot-ui'
import { Card } from '@/components/ui/card'

export function WalletPanel() {
  return (
    <Card title="Wallet">
      <RequireAccount>
        <AccountInfo />
        <BalanceDisplay />
      </RequireAccount>
    </Card>
  )
}
""",
    "components/wallet/TxHistoryTable.tsx": """import type { TxRecord } from '@/lib/tx/submit'
import { Card } from '@/components/ui/card'

export function TxHistoryTable({ records = [] }: { records?: TxRecord[] }) {
  return (
    <Card title="History">
      {records.length === 0 ? (
        <p className="text-sm text-slate-500">No transactions yet.</p>
      ) : (
        <table className="w-full text-sm">
          <tbody>
            {records.map((record: TxRecord) => (
              <tr key={record.id}>
                <td>{record.label}</td>
                <td>{record.status}</td>
              </tr>
            ))}
          </tbody>
        </table>
      )}
    </Card>
  )
}
""",
    "components/charts/NetworkHealth.tsx": """import { DEFAULT_CHAIN } from '@/lib/chains'
import { Card } from '@/components/ui/card'

export function NetworkHealth() {
  return (
    <Card title="Network">
      <p className="text-sm">
        {DEFAULT_CHAIN.name} via {DEFAULT_CHAIN.endpoint}
      </p>
    </Card>
  )
}
""",
    "components/polkadot-ui/index.ts": """export { ConnectWallet } from './ConnectWallet'
export { NetworkIndicator } from './NetworkIndicator'
export { RequireConnection } from './RequireConnection'
export { RequireAccount } from './RequireAccount'
export { TxButton } from './TxButton'
export { TxNotification } from './TxNotification'
export { AccountInfo } from './AccountInfo'
export { BalanceDisplay } from './BalanceDisplay'
export { AddressInput } from './AddressInput'
export { AmountInput } from './AmountInput'
export { SelectToken } from './SelectToken'
export { SelectTokenDialog } from './SelectTokenDialog'
""",
    "components/polkadot-ui/ConnectWallet.tsx": """"use client"
import { usePolkadotUIContext } from '@/providers/PolkadotUIProvider'

export function ConnectWallet() {
  const { status, connect, disconnect } = usePolkadotUIContext()
  if (status === 'connected') {
    return (
      <button type="button" className="rounded border px-3 py-1 text-sm" onClick={disconnect}>
        Disconnect
      </button>
    )
  }
  return (
    <button type="button" className="rounded bg-violet-600 px-3 py-1 text-sm text-white" onClick={() => connect()}>
      {status === 'connecting' ? 'Connecting...' : 'Connect wallet'}
    </button>
  )
}
""",
    "components/polkadot-ui/NetworkIndicator.tsx": """"use client"
import { usePolkadotUIContext } from '@/providers/PolkadotUIProvider'
import { DEFAULT_CHAIN } from '@/lib/chains'

export function NetworkIndicator() {
  const { status } = usePolkadotUIContext()
  const color = status === 'connected' ? 'bg-emerald-500' : 'bg-slate-400'
  return (
    <span className="flex items-center gap-2 text-xs">
      <span className={`h-2 w-2 rounded-full ${color}`} />
      {DEFAULT_CHAIN.name}
    </span>
  )
}
""",
    "components/polkadot-ui/RequireConnection.tsx": """"use client"
import type { ReactNode } from 'react'
import { usePolkadotUIContext } from '@/providers/PolkadotUIProvider'
import { ConnectWallet } from './ConnectWallet'

export function RequireConnection({ children }: { children: ReactNode }) {
  const { status } = usePolkadotUIContext()
  if (status !== 'connected') {
    return <ConnectWallet />
  }
  return <>{children}</>
}
""",
    "components/polkadot-ui/RequireAccount.tsx": """"use client"
import type { ReactNode } from 'react'
import { usePolkadotUIContext } from '@/providers/PolkadotUIProvider'
import { RequireConnection } from './RequireConnection'

export function RequireAccount({ children }: { children: ReactNode }) {
  const { selectedAccount } = usePolkadotUIContext()
  return (
    <RequireConnection>
      {selectedAccount ? children : <p className="text-sm">Select an account to continue.</p>}
    </RequireConnection>
  )
}
""",
    "components/polkadot-ui/TxButton.tsx": """"use client"
import { useState } from 'react'

export function TxButton({
  label,
  disabled,
  onSubmit,
}: {
  label: string
  disabled?: boolean
  onSubmit: () => Promise<unknown>
}) {
  const [busy, setBusy] = useState(false)
  return (
    <button
      type="button"
      className="mt-3 rounded bg-violet-600 px-4 py-2 text-white disabled:opacity-50"
      disabled={disabled || busy}
      onClick={async () => {
        setBusy(true)
        try {
          await onSubmit()
        } finally {
          setBusy(false)
        }
      }}
    >
      {busy ? 'Submitting...' : label}
    </button>
  )
}
""",
    "components/polkadot-ui/TxNotification.tsx": """import { toast } from 'sonner'
import type { TxRecord } from '@/lib/tx/submit'

export function TxNotification({ record }: { record: TxRecord }) {
  if (record.status === 'failed') {
    toast.error(`${record.label} failed`)
  } else if (record.status === 'finalized') {
    toast.success(`${record.label} finalized`)
  }
  return null
}
""",
    "components/polkadot-ui/AccountInfo.tsx": """"use client"
import { usePolkadotUIContext } from '@/providers/PolkadotUIProvider'

export function AccountInfo() {
  const { selectedAccount } = usePolkadotUIContext()
  if (!selectedAccount) {
    return null
  }
  return (
    <div className="text-sm">
      <div className="font-medium">{selectedAccount.name ?? 'Account'}</div>
      <div className="font-mono text-xs text-slate-500">{selectedAccount.address}</div>
    </div>
  )
}
""",
    "components/polkadot-ui/BalanceDisplay.tsx": """import { DEFAULT_CHAIN } from '@/lib/chains'

export function BalanceDisplay({ balance = '0' }: { balance?: string }) {
  return (
    <div className="mt-2 text-lg font-semibold">
      {balance} {DEFAULT_CHAIN.unit}
    </div>
  )
}
""",
    "components/polkadot-ui/AddressInput.tsx": """"use client"

export function AddressInput({ value, onValueChange }: { value: string; onValueChange: (next: string) => void }) {
  return (
    <input
      className="w-full rounded border px-3 py-2 font-mono text-sm"
      placeholder="Recipient address"
      value={value}
      onChange={(event) => onValueChange(event.target.value)}
    />
  )
}
""",
    "components/polkadot-ui/AmountInput.tsx": """"use client"
import { DEFAULT_CHAIN } from '@/lib/chains'

export function AmountInput({ value, onValueChange }: { value: string; onValueChange: (next: string) => void }) {
  return (
    <label className="flex items-center gap-2">
      <input
        className="w-full rounded border px-3 py-2"
        inputMode="decimal"
        value={value}
        onChange={(event) => onValueChange(event.target.value)}
      />
      <span className="text-sm">{DEFAULT_CHAIN.unit}</span>
    </label>
  )
}
""",
    "components/polkadot-ui/SelectToken.tsx": """"use client"

export function SelectToken({
  tokens,
  value,
  onValueChange,
}: {
  tokens: string[]
  value: string
  onValueChange: (next: string) => void
}) {
  return (
    <select className="rounded border px-3 py-2" value={value} onChange={(event) => onValueChange(event.target.value)}>
      {tokens.map((token: string) => (
        <option key={token} value={token}>
          {token}
        </option>
      ))}
    </select>
  )
}
""",
    "components/polkadot-ui/SelectTokenDialog.tsx": """"use client"
import { useState } from 'react'
import { SelectToken } from './SelectToken'

export function SelectTokenDialog({ tokens, onSelect }: { tokens: string[]; onSelect: (token: string) => void }) {
  const [open, setOpen] = useState(false)
  const [value, setValue] = useState(tokens[0] ?? '')
  return (
    <div>
      <button type="button" className="rounded border px-3 py-1" onClick={() => setOpen(!open)}>
        {value || 'Select token'}
      </button>
      {open ? (
        <SelectToken
          tokens={tokens}
          value={value}
          onValueChange={(next: string) => {
            setValue(next)
            onSelect(next)
            setOpen(false)
          }}
        />
      ) : null}
    </div>
  )
}
""",
}

OWNED_PATHS: tuple[str, ...] = (
    "package.json",
    "tsconfig.json",
    "next.config.mjs",
    "tailwind.config.ts",
    "postcss.config.js",
    "app/globals.css",
    "app/layout.tsx",
    "app/page.tsx",
    "app/experience/page.tsx",
    "providers/AppProviders.tsx",
    "providers/PreferenceStore.ts",
    "providers/PolkadotUIProvider.tsx",
    PROJECT_CONFIG_PATH,
    "lib/reactQueryCompat.ts",
    "lib/examples/useReactQueryExample.ts",
    "components/forms/MintNftForm.tsx",
    "components/wallet/WalletPanel.tsx",
    "components/wallet/TxHistoryTable.tsx",
    "components/charts/NetworkHealth.tsx",
    "hooks/usePolkadotUI.ts",
    "hooks/usePreferenceStore.ts",
    "components/layout/AppShell.tsx",
    "components/layout/NavItems.ts",
    "components/ui/tabs.tsx",
    "components/ui/card.tsx",
    "components/polkadot-ui/index.ts",
    "components/polkadot-ui/ConnectWallet.tsx",
    "components/polkadot-ui/NetworkIndicator.tsx",
    "components/polkadot-ui/RequireConnection.tsx",
    "components/polkadot-ui/RequireAccount.tsx",
    "components/polkadot-ui/TxButton.tsx",
    "components/polkadot-ui/TxNotification.tsx",
    "components/polkadot-ui/AccountInfo.tsx",
    "components/polkadot-ui/BalanceDisplay.tsx",
    "components/polkadot-ui/AddressInput.tsx",
    "components/polkadot-ui/AmountInput.tsx",
    "components/polkadot-ui/SelectToken.tsx",
    "components/polkadot-ui/SelectTokenDialog.tsx",
    "lib/chains.ts",
    "lib/tx/submit.ts",
)

_OWNED_SET = frozenset(OWNED_PATHS)


def is_owned(path: str) -> bool:
    """True for template paths, also when generated under a nested prefix."""
    normalized = path.strip().removeprefix("./").lstrip("/")
    if normalized in _OWNED_SET:
        return True
    return any(normalized.endswith(f"/{owned}") for owned in _OWNED_SET)


def package_name_for(project_id: str) -> str:
    return re.sub(r"[^a-z0-9]", "-", project_id[:20].lower())


def render_template(path: str, *, project_id: str) -> str | None:
    """Return the template text for an owned path; the project config is generated elsewhere."""
    if path == "package.json":
        payload = copy.deepcopy(PACKAGE_JSON)
        payload["name"] = package_name_for(project_id)
        return json.dumps(payload, indent=2)
    if path == "tsconfig.json":
        return json.dumps(TSCONFIG_JSON, indent=2)
    return _TEXT_TEMPLATES.get(path)


def render_env_file(project_id: str, *, port: int, env: dict[str, str] | None = None) -> str:
    values = env or {}
    return (
        "# Draft environment\n"
        f"NEXT_PUBLIC_APP_NAME=Draft ({project_id})\n"
        f"NEXT_PUBLIC_POLKADOT_ENDPOINT={values.get('NEXT_PUBLIC_POLKADOT_ENDPOINT', 'wss://rpc.polkadot.io')}\n"
        f"NEXT_PUBLIC_POLKADOT_CHAIN={values.get('NEXT_PUBLIC_POLKADOT_CHAIN', 'Polkadot')}\n"
        f"NEXT_PUBLIC_POLKADOT_UNIT={values.get('NEXT_PUBLIC_POLKADOT_UNIT', 'DOT')}\n"
        f"NEXT_PUBLIC_POLKADOT_DECIMALS={values.get('NEXT_PUBLIC_POLKADOT_DECIMALS', '10')}\n"
        f"PORT={port}\n"
    )
