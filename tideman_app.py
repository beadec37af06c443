#!/usr/bin/env python3
"""
Tideman Ranked Pairs - Desktop Application

A graphical interface for entering candidates and ballots and finding
the Ranked Pairs (Tideman) winner.

Usage:
    python tideman_app.py

Requirements:
    pip install flet pandas networkx openpyxl graphviz
"""

import multiprocessing
from pathlib import Path

import flet as ft

from tideman import (
    MAX_CANDIDATES,
    CandidateCountError,
    ElectionResult,
    InvalidBallotError,
    NoSourceError,
    create_results_excel,
    parse_ballot_text,
    parse_candidate_text,
    run_election,
    validate_candidates,
)


def main(page: ft.Page):
    """Main application entry point."""

    # Page configuration
    page.title = "Tideman Ranked Pairs"
    page.window.width = 800
    page.window.height = 760
    page.padding = 30
    page.theme_mode = ft.ThemeMode.LIGHT

    # State
    last_result = None

    # --- UI Components ---

    title = ft.Text(
        "Tideman Ranked Pairs",
        size=32,
        weight=ft.FontWeight.BOLD,
    )

    subtitle = ft.Text(
        f"Enter up to {MAX_CANDIDATES} candidates and one full ranking per voter",
        size=16,
        color=ft.Colors.GREY_700,
    )

    candidates_field = ft.TextField(
        label="Candidates (comma-separated)",
        hint_text="Alice, Bob, Charlie",
        width=700,
    )

    ballots_field = ft.TextField(
        label="Ballots (one per line, most preferred first)",
        hint_text="Alice, Bob, Charlie\nBob, Charlie, Alice",
        multiline=True,
        min_lines=6,
        max_lines=12,
        width=700,
    )

    status_text = ft.Text(
        "",
        size=14,
        color=ft.Colors.GREY_700,
    )

    results_container = ft.Container(
        visible=False,
        padding=20,
        border_radius=10,
        bgcolor=ft.Colors.GREY_100,
        content=ft.Column([]),
    )

    def on_report_saved(e: ft.FilePickerResultEvent):
        if not e.path or last_result is None:
            return
        output_path = Path(e.path)
        if output_path.suffix.lower() != ".xlsx":
            output_path = output_path.with_suffix(".xlsx")
        create_results_excel(last_result, output_path)
        status_text.value = f"Saved report to {output_path.name}"
        status_text.color = ft.Colors.GREEN_700
        page.update()

    report_picker = ft.FilePicker(on_result=on_report_saved)
    page.overlay.append(report_picker)

    def show_results(result: ElectionResult):
        names = result.candidates
        rows = [
            ft.Container(
                padding=10,
                border_radius=5,
                bgcolor=ft.Colors.GREEN_100,
                content=ft.Row([
                    ft.Icon(ft.Icons.CHECK_CIRCLE, color=ft.Colors.GREEN_700),
                    ft.Text(
                        f"Winner: {result.winner}",
                        weight=ft.FontWeight.BOLD,
                        color=ft.Colors.GREEN_900,
                    ),
                ]),
            ),
            ft.Text(
                f"{result.voter_count} ballot(s), {len(names)} candidate(s)",
                size=12,
                color=ft.Colors.GREY_700,
            ),
            ft.Divider(),
            ft.Text("Ranked pairs:", weight=ft.FontWeight.BOLD, size=16),
        ]

        if not result.pairs:
            rows.append(ft.Text("  (no pairwise victories)", size=12))

        skipped = set(result.skipped_pairs)
        for pair in result.pairs:
            locked = pair not in skipped
            rows.append(
                ft.Row([
                    ft.Icon(
                        ft.Icons.LOCK if locked else ft.Icons.BLOCK,
                        color=ft.Colors.BLUE_700 if locked else ft.Colors.ORANGE_700,
                        size=16,
                    ),
                    ft.Text(f"{names[pair.winner]} > {names[pair.loser]}", width=350),
                    ft.Text(
                        f"margin {pair.margin}" + ("" if locked else " (skipped: cycle)"),
                        color=ft.Colors.GREY_600,
                    ),
                ])
            )

        rows.append(ft.Container(height=10))
        rows.append(
            ft.ElevatedButton(
                "Save Excel Report",
                icon=ft.Icons.SAVE,
                on_click=lambda _: report_picker.save_file(
                    dialog_title="Save election report",
                    file_name="tideman-results.xlsx",
                    allowed_extensions=["xlsx"],
                ),
            )
        )

        results_container.content = ft.Column(rows, spacing=5)
        results_container.visible = True

    def run_ranked_pairs():
        """Run the election and update the UI."""
        nonlocal last_result

        results_container.visible = False
        last_result = None

        try:
            candidates = validate_candidates(parse_candidate_text(candidates_field.value or ""))
            ballots = parse_ballot_text(ballots_field.value or "", candidates)
            if not ballots:
                raise InvalidBallotError("Enter at least one ballot")

            last_result = run_election(candidates, ballots)
            show_results(last_result)

            status_text.value = "Done!"
            status_text.color = ft.Colors.GREEN_700

        except (CandidateCountError, InvalidBallotError) as e:
            status_text.value = f"Error: {e}"
            status_text.color = ft.Colors.RED_700

        except NoSourceError as e:
            status_text.value = f"Internal error: {e}"
            status_text.color = ft.Colors.RED_900

        finally:
            page.update()

    run_button = ft.ElevatedButton(
        "Run Ranked Pairs",
        icon=ft.Icons.PLAY_ARROW,
        style=ft.ButtonStyle(
            bgcolor={
                ft.ControlState.DEFAULT: ft.Colors.BLUE_700,
                ft.ControlState.DISABLED: ft.Colors.GREY_400,
            },
            color={
                ft.ControlState.DEFAULT: ft.Colors.WHITE,
                ft.ControlState.DISABLED: ft.Colors.GREY_600,
            },
        ),
        on_click=lambda _: run_ranked_pairs(),
    )

    help_text = ft.Container(
        padding=15,
        border_radius=10,
        bgcolor=ft.Colors.BLUE_50,
        content=ft.Column([
            ft.Text("How to use:", weight=ft.FontWeight.BOLD, color=ft.Colors.BLUE_900),
            ft.Text(
                "1. List the candidates, separated by commas\n"
                "2. Type one ballot per line, ranking every candidate\n"
                "3. Click 'Run Ranked Pairs'\n"
                "4. Any invalid ballot stops the count; fix it and run again",
                size=13,
                color=ft.Colors.BLUE_800,
            ),
        ], spacing=5),
    )

    # --- Layout ---

    page.add(
        ft.Column([
            title,
            subtitle,
            ft.Container(height=20),

            candidates_field,
            ballots_field,

            ft.Container(height=10),

            ft.Row([
                run_button,
                status_text,
            ], spacing=20),

            ft.Container(height=20),

            results_container,

            ft.Container(height=20),

            help_text,

        ], spacing=5, scroll=ft.ScrollMode.AUTO, expand=True)
    )


if __name__ == "__main__":
    multiprocessing.freeze_support()  # Required for PyInstaller on Windows
    ft.app(target=main)
