"""
Ingestion layer — Warcraft Logs API access.

Submodules:
  token_cache     — process-wide OAuth2 client-credentials token cell
  graphql_client  — async GraphQL POST helper with error mapping
  rankings        — leaderboard query (``RankingsFetcher``)
  talents         — two-stage actor → talent code resolution (``TalentResolver``)

Credential placement (.env, gitignored):
  WCL_CLIENT_ID       — Warcraft Logs OAuth2 client ID
  WCL_CLIENT_SECRET   — Warcraft Logs OAuth2 client secret
"""
