import argparse
import logging
import sys
import time

import httpx

from repochat_app.allocator import attribute_sources, select_context
from repochat_app.config import BudgetConfig, GitHubSettings, LLMSettings, SummarySettings, load_config, load_env
from repochat_app.github import GitHubError, fetch_repo_files, parse_repo_url
from repochat_app.llm import create_client, generate_summary, send_chat
from repochat_app.models import ChatAnswer, ParsedDigest
from repochat_app.parser import parse_digest
from repochat_app.summary import apply_generated_summary, needs_generated_summary, summary_generation_failed
from repochat_app.synthesis import build_digest_text

logger = logging.getLogger(__name__)


def load_digest(text: str, repo_url: str | None = None) -> ParsedDigest:
    return parse_digest(text, repo_url=repo_url)


def fetch_digest(url: str, settings: GitHubSettings, branch: str | None = None,
                 client: httpx.Client | None = None) -> tuple[str, ParsedDigest]:
    """Build digest text for a GitHub repository via the REST API and parse it."""
    parsed = parse_repo_url(url)
    target_branch = branch or parsed["branch"]

    logger.info("Fetching %s/%s via GitHub API (branch=%s)", parsed["owner"], parsed["repo"], target_branch)
    t0 = time.time()
    own_client = client is None
    if own_client:
        client = httpx.Client(timeout=settings.timeout)
    try:
        files = fetch_repo_files(parsed["owner"], parsed["repo"], target_branch, settings, client)
    finally:
        if own_client:
            client.close()
    logger.info("Fetched %d files in %.1fs", len(files), time.time() - t0)

    text = build_digest_text(files)
    return text, parse_digest(text, repo_url=url)


def enrich_summary(digest: ParsedDigest, llm_client, llm_settings: LLMSettings,
                   summary_settings: SummarySettings, budget: BudgetConfig) -> ParsedDigest:
    """Replace a missing or thin summary with a generated one (at most once per digest)."""
    if not needs_generated_summary(digest, summary_settings):
        return digest
    logger.info("Generating repository summary for %s", digest.title)
    try:
        raw = generate_summary(digest, llm_client, llm_settings, summary_settings, budget)
    except Exception as e:
        logger.error("Summary generation failed: %s", e, exc_info=True)
        return summary_generation_failed(digest)
    return apply_generated_summary(digest, raw, summary_settings)


def answer_query(digest: ParsedDigest, query: str, llm_client, llm_settings: LLMSettings,
                 budget: BudgetConfig, history: list[dict] | None = None) -> ChatAnswer:
    context = select_context(digest, query, budget)
    answer = send_chat(llm_client, llm_settings, query, context, digest.title, history)
    return ChatAnswer(answer=answer, sources=attribute_sources(answer, context.context_files))


def main():
    parser = argparse.ArgumentParser(
        description="Parse a repository digest and ask questions about it with an LLM"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("-f", "--file", help="Digest text file")
    source.add_argument("-u", "--url", help="GitHub repository URL to fetch via the API")
    parser.add_argument("-b", "--branch", default=None, help="Branch name (defaults to main, then master)")
    parser.add_argument("-r", "--repo-url", default=None, help="Repository URL the digest file was taken from")
    parser.add_argument("-q", "--query", default=None, help="Question about the repository")
    parser.add_argument("-s", "--summarize", action="store_true", help="Generate a summary when the digest lacks one")
    parser.add_argument("-c", "--chat", action="store_true", help="Send the query to the LLM")
    parser.add_argument("--show-context", action="store_true", help="Print the context selected for the query")
    parser.add_argument("--config", default=None, help="Path to config.toml")

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s  %(message)s")
    load_env()
    config = load_config(args.config)
    budget = BudgetConfig.from_config(config)

    try:
        if args.file:
            with open(args.file, "r", encoding="utf-8") as f:
                digest = load_digest(f.read(), repo_url=args.repo_url)
        else:
            _, digest = fetch_digest(args.url, GitHubSettings.from_config(config), branch=args.branch)

        llm_client = llm_settings = None
        if args.summarize or args.chat:
            llm_settings = LLMSettings.from_config(config)
            llm_client = create_client(llm_settings)

        if args.summarize:
            digest = enrich_summary(digest, llm_client, llm_settings, SummarySettings.from_config(config), budget)
    except (ValueError, GitHubError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"=== {digest.title} ===")
    print(f"Files: {digest.total_files_analyzed}  Size: {digest.total_size_analyzed:,} chars")
    if digest.keywords:
        print(f"Keywords: {', '.join(digest.keywords)}")
    print(f"\n=== SUMMARY ===\n{digest.summary_text}")

    if not args.query:
        return

    if args.show_context:
        context = select_context(digest, args.query, budget)
        print("\n=== CONTEXT ===")
        for file in context.context_files:
            print(f"{file.path} ({len(file.content):,} chars)")
        print(f"summary: {len(context.summary):,} chars, tree: {len(context.tree):,} chars")

    if args.chat:
        result = answer_query(digest, args.query, llm_client, llm_settings, budget)
        print(f"\n=== ANSWER ===\n{result.answer}")
        if result.sources:
            print(f"\nSources: {', '.join(f.path for f in result.sources)}")


if __name__ == "__main__":
    main()
