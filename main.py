from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from dotenv import load_dotenv
from resume_pipeline.agents.cv_parser import LLMResumeParser, StaticResumeParser
from resume_pipeline.agents.decision import dispatch_decision, summarize
from resume_pipeline.agents.verifier import MockVerifier
from resume_pipeline.config import get_settings
from resume_pipeline.graph.workflow import PipelineDeps, is_successful, run_pipeline
from resume_pipeline.llm_provider import get_llm
from resume_pipeline.state import CandidateProfile, JobRequirement
from resume_pipeline.tools.memory_store import InMemoryStore
from resume_pipeline.tools.notifier import LoggingNotifier
from resume_pipeline.tools.suspicion import LLMSuspicionAnalyzer


def _read_json(path: str) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def main() -> int:
    load_dotenv()  # load .env if exists
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Candidate evaluation pipeline (fraud check, fit score, rank)")
    parser.add_argument("--job", required=True, help="Path to job requirements JSON")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--profile", help="Path to an already extracted candidate profile JSON")
    source.add_argument("--resume", help="Path to resume file (.txt, .md or .pdf), extracted with the LLM")
    parser.add_argument("--candidate-id", default="CAND-local", help="Candidate identifier")
    parser.add_argument("--job-id", default="JOB-local", help="Job identifier")
    parser.add_argument("--priority", default="low", choices=["high", "medium", "low"], help="Candidate priority tier")
    parser.add_argument("--verify", action="store_true", help="Run (mock) background verification")
    parser.add_argument("--provider", default=settings.LLM_PROVIDER, choices=["auto", "gemini", "mistral"], help="LLM provider selection")
    parser.add_argument("--no-ai", action="store_true", help="Skip the AI suspicion analysis")
    parser.add_argument("--auto-email", action="store_true", help="Send the automatic shortlist/reject email (logged only)")
    parser.add_argument("--out", default="evaluation.json", help="Output JSON path")
    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    store = InMemoryStore()
    store.add_job(args.job_id, JobRequirement.model_validate(_read_json(args.job)))
    store.add_candidate(args.candidate_id, args.job_id, priority=args.priority)

    llm = None
    if args.resume or not args.no_ai:
        llm = get_llm(settings, provider=args.provider)

    if args.resume:
        resume_parser = LLMResumeParser(llm, {args.candidate_id: args.resume})
    else:
        profile = CandidateProfile.model_validate(_read_json(args.profile))
        resume_parser = StaticResumeParser({args.candidate_id: profile})

    deps = PipelineDeps(
        parser=resume_parser,
        profiles=store,
        duplicates=store,
        jobs=store,
        sink=store,
        priorities=store,
        suspicion=None if args.no_ai else LLMSuspicionAnalyzer(llm),
        verifier=MockVerifier() if args.verify else None,
    )
    final = run_pipeline(
        args.candidate_id,
        args.job_id,
        deps,
        priority=args.priority,
        verification_enabled=args.verify,
        settings=settings,
    )

    if final.errors:
        print("[WARN] Pipeline completed with errors:")
        for e in final.errors:
            print(" -", e)

    summary = summarize(final)
    if args.auto_email:
        summary["autoEmailSent"] = dispatch_decision(final, LoggingNotifier(store), settings)

    out_path = Path(args.out)
    out_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    if is_successful(final):
        print(f"[OK] Rank {final.final_rank}. Evaluation written to: {out_path.resolve()}")
        return 0
    print(f"[ERR] Pipeline ended with status {final.status.value}. Details in: {out_path.resolve()}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
