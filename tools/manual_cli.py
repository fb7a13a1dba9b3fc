# tools/manual_cli.py
from __future__ import annotations
import argparse, json, logging, sys
from typing import Optional

import httpx

from risk_core.errors import ConfigurationError, SubmissionFailure, ValidationError
from risk_core.gateway import RestBackend, load_snapshot, resolve_endpoints
from risk_core.tiers import describe_bands
from risk_core.types import SelectionMode
from risk_core.wizard import WizardController, WizardState


def _local_backend(profile_branch: Optional[int]):
    from api.backend import StorageBackend
    return StorageBackend(profile_branch_id=profile_branch)


def _ask(prompt: str) -> str:
    return input(prompt).strip()


def ask_subject(ctl: WizardController) -> None:
    while ctl.current_state is WizardState.AWAITING_SUBJECT_INFO:
        name = _ask(f"Customer name [{ctl.subject_name}]: ") or None
        branch = None
        if ctl.requires_branch:
            raw = _ask("Branch id: ")
            branch = int(raw) if raw.isdigit() else None
        try:
            ctl.begin(name, branch)
        except ValidationError as e:
            print(f"  ! {e}")


def ask_criterion(ctl: WizardController) -> None:
    crit = ctl.current_criterion
    if crit is None:
        return
    multiple = ctl.mode_of(crit.id) is SelectionMode.MULTIPLE
    entry = ctl.responses.get(crit.id)
    chosen = set(entry.option_ids()) if entry else set()
    print(f"\n[{ctl.index + 1}/{ctl.total_steps}] {crit.category}" + ("  (select all that apply)" if multiple else ""))
    for i, opt in enumerate(crit.options):
        mark = "x" if opt.id in chosen else " "
        print(f"  {i}: [{mark}] {opt.label} ({opt.points} pts)")
    hint = "index to toggle, n=next, p=previous" if multiple else "index, p=previous"
    raw = _ask(f"{hint}: ").lower()
    try:
        if raw == "p":
            ctl.previous()
        elif raw == "n":
            ctl.next()
        elif raw.isdigit() and int(raw) < len(crit.options):
            ctl.answer(crit.options[int(raw)].id)
        else:
            print("  ! enter an option index")
    except ValidationError as e:
        print(f"  ! {e}")


def review(ctl: WizardController) -> bool:
    res = ctl.compute_result()
    print(f"\nCustomer: {ctl.subject_name}")
    print(f"Total score: {res.total_score}")
    print(f"Risk level: {res.risk_tier.value}")
    for band in describe_bands(ctl.snapshot.thresholds):
        print(f"  {band['tier']}: {band['text']}")
    raw = _ask("Submit? [y]es / [p]revious / [q]uit: ").lower()
    if raw == "p":
        ctl.previous()
        return False
    if raw != "y":
        raise KeyboardInterrupt
    try:
        outcome = ctl.submit()
    except SubmissionFailure as e:
        print(f"  ! {e} (you can retry)")
        return False
    print(outcome.message)
    return True


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Walk through a customer risk assessment")
    ap.add_argument("--url", help="base URL of the assessment API; local data dir when omitted")
    ap.add_argument("--token")
    ap.add_argument("--role", action="append", default=[], help="caller role (repeatable)")
    ap.add_argument("--branch", type=int, help="caller profile branch id")
    ap.add_argument("--edit", metavar="RECORD_ID", help="edit an existing assessment")
    ap.add_argument("-v", "--verbose", action="store_true")
    a = ap.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if a.verbose else logging.WARNING)

    backend = RestBackend.connect(a.url, a.role, a.token) if a.url else _local_backend(a.branch)
    try:
        snapshot = load_snapshot(backend)
    except ConfigurationError as e:
        print(f"Assessment unavailable: {e}", file=sys.stderr)
        return 2

    if a.edit:
        try:
            ctl = WizardController.for_edit(snapshot, backend, a.edit)
        except (KeyError, httpx.HTTPStatusError):
            print(f"Assessment not found: {a.edit}", file=sys.stderr)
            return 2
    else:
        ctl = WizardController(snapshot, backend, requires_branch=resolve_endpoints(a.role).requires_branch)

    print("Customer risk assessment. Ctrl+C to exit.")
    try:
        while ctl.current_state is not WizardState.SUBMITTED:
            if ctl.current_state is WizardState.AWAITING_SUBJECT_INFO:
                ask_subject(ctl)
            elif ctl.current_state is WizardState.ANSWERING:
                ask_criterion(ctl)
            elif review(ctl) and ctl.last_outcome is not None and not ctl.last_outcome.changed:
                break
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 1

    outcome = ctl.last_outcome
    if outcome is not None:
        print(json.dumps(outcome.result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
