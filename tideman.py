#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tideman Ranked Pairs Election

Computes the winner of a ranked-choice election with the Tideman
(ranked pairs) method:

1. Tally, for every ordered pair of candidates, how many voters
   ranked the first above the second
2. Extract the pairwise victories (strict majorities) with their margins
3. Rank the victories by margin, strongest first
4. Lock each victory into a graph unless it would close a cycle
5. The candidate nobody is locked over (the source) wins

Ballots are full rankings: every voter orders every candidate.

Usage:
    python tideman.py Alice Bob Charlie
    python tideman.py Alice Bob Charlie --ballots ballots.csv
    python tideman.py Alice Bob Charlie --ballots ballots.csv --report results.xlsx
"""

import argparse
import operator
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import graphviz
import networkx as nx
import pandas as pd


# Default upper bound on the number of candidates in an election
MAX_CANDIDATES = 9

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_TOO_MANY_CANDIDATES = 2
EXIT_INVALID_VOTE = 3
EXIT_INTERNAL_ERROR = 4


# =============================================================================
# Errors
# =============================================================================

class TidemanError(Exception):
    """Base class for all election errors."""


class InvalidBallotError(TidemanError, ValueError):
    """A ballot is not a full ranking of the candidates."""


class CandidateCountError(TidemanError, ValueError):
    """The candidate list is empty, too long, or has unusable names."""


class NoSourceError(TidemanError, RuntimeError):
    """
    No candidate is free of locked defeats.

    Locking never closes a cycle, so the locked graph always has a source.
    Seeing this error means the locking step is broken.
    """


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class Pair:
    """A pairwise victory of one candidate (by index) over another."""
    winner: int
    loser: int
    margin: int


@dataclass
class ElectionResult:
    """Container for everything computed during one election."""
    candidates: list[str]
    winner: str
    winner_index: int
    tally: "PreferenceTally"
    pairs: list[Pair]
    locked_graph: nx.DiGraph
    skipped_pairs: list[Pair] = field(default_factory=list)

    @property
    def voter_count(self) -> int:
        return self.tally.voter_count


# =============================================================================
# Candidates and Ballots
# =============================================================================

def validate_candidates(
    candidates: Sequence[str],
    max_candidates: int = MAX_CANDIDATES
) -> list[str]:
    """
    Check a candidate list before any ballots are read.

    Args:
        candidates: Candidate names in index order
        max_candidates: Largest number of candidates allowed

    Returns:
        The candidate names as a list

    Raises:
        CandidateCountError: If there are no candidates, too many, or a name
            is empty or repeated
    """
    names = list(candidates)

    if not names:
        raise CandidateCountError("At least one candidate is required")

    if len(names) > max_candidates:
        raise CandidateCountError(
            f"Maximum number of candidates is {max_candidates}"
        )

    for name in names:
        if not name or not name.strip():
            raise CandidateCountError("Candidate names must not be empty")

    if len(set(names)) != len(names):
        repeated = sorted({n for n in names if names.count(n) > 1})
        raise CandidateCountError(
            f"Candidate names must be unique, repeated: {', '.join(repeated)}"
        )

    return names


def validate_ballot(ballot: Sequence[int], n_candidates: int) -> list[int]:
    """
    Check that a ballot is a permutation of the candidate indices.

    Args:
        ballot: Candidate indices, most preferred first
        n_candidates: Number of candidates in the election

    Returns:
        The ballot as a list of ints

    Raises:
        InvalidBallotError: On wrong length, an out-of-range index or
            a repeated index
    """
    ranks = list(ballot)

    if len(ranks) != n_candidates:
        raise InvalidBallotError(
            f"Ballot ranks {len(ranks)} candidates, expected {n_candidates}"
        )

    seen = set()
    checked = []
    for index in ranks:
        if isinstance(index, bool):
            raise InvalidBallotError(f"Invalid candidate index {index!r}")
        try:
            index = operator.index(index)
        except TypeError:
            raise InvalidBallotError(f"Invalid candidate index {index!r}") from None
        if not 0 <= index < n_candidates:
            raise InvalidBallotError(f"Candidate index {index} out of range")
        if index in seen:
            raise InvalidBallotError(f"Candidate index {index} ranked twice")
        seen.add(index)
        checked.append(index)

    return checked


def ballot_from_names(names: Sequence[str], candidates: Sequence[str]) -> list[int]:
    """
    Convert a ballot of candidate names into a ballot of indices.

    Args:
        names: Candidate names, most preferred first
        candidates: Candidate names in index order

    Returns:
        Validated ballot of candidate indices

    Raises:
        InvalidBallotError: If a name is unknown or the ranking is incomplete
    """
    lookup = {name: i for i, name in enumerate(candidates)}
    ballot = []
    for name in names:
        if name not in lookup:
            raise InvalidBallotError(f"Unknown candidate '{name}'")
        ballot.append(lookup[name])
    return validate_ballot(ballot, len(candidates))


def parse_candidate_text(text: str) -> list[str]:
    """Split comma- or newline-separated candidate names."""
    return [
        name.strip()
        for line in text.splitlines()
        for name in line.split(",")
        if name.strip()
    ]


def parse_ballot_text(text: str, candidates: Sequence[str]) -> list[list[int]]:
    """
    Parse ballots typed one per line, names separated by commas.

    Blank lines are ignored.

    Args:
        text: Ballot text
        candidates: Candidate names in index order

    Returns:
        List of validated ballots

    Raises:
        InvalidBallotError: On the first bad line, with its line number
    """
    ballots = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        names = [name.strip() for name in line.split(",")]
        try:
            ballots.append(ballot_from_names(names, candidates))
        except InvalidBallotError as e:
            raise InvalidBallotError(f"Line {line_no}: {e}") from e
    return ballots


def load_ballots_csv(filepath: Path, candidates: Sequence[str]) -> list[list[int]]:
    """
    Load ballots from a CSV file.

    Each row is one ballot listing candidate names from most to least
    preferred. There is no header row.

    Args:
        filepath: Path to the CSV file
        candidates: Candidate names in index order

    Returns:
        List of validated ballots

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file holds no ballots
        InvalidBallotError: If a row is not a full ranking
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Ballot file not found: {filepath}")

    try:
        df = pd.read_csv(
            filepath,
            header=None,
            dtype=str,
            skipinitialspace=True,
            skip_blank_lines=True,
            keep_default_na=False,
            na_filter=False,
        )
    except pd.errors.EmptyDataError:
        df = pd.DataFrame()
    except pd.errors.ParserError as e:
        # Rows longer than the first one
        raise InvalidBallotError(f"Malformed ballot file: {e}") from e

    if df.empty:
        raise ValueError(f"Ballot file is empty: {filepath}")

    ballots = []
    for row_no, row in enumerate(df.itertuples(index=False), start=1):
        names = [
            value.strip() for value in row
            if isinstance(value, str) and value.strip() != ""
        ]
        try:
            ballots.append(ballot_from_names(names, candidates))
        except InvalidBallotError as e:
            raise InvalidBallotError(f"Row {row_no}: {e}") from e

    return ballots


# =============================================================================
# Preference Tally
# =============================================================================

class PreferenceTally:
    """
    Pairwise preference counts.

    ``counts.iat[i, j]`` is the number of voters who ranked candidate i
    above candidate j. Rows and columns are labelled with candidate names
    and kept in index order. The diagonal stays zero.
    """

    def __init__(self, candidates: Sequence[str]):
        self.candidates = list(candidates)
        n = len(self.candidates)
        self.counts = pd.DataFrame(
            [[0] * n for _ in range(n)],
            index=self.candidates,
            columns=self.candidates,
            dtype="int64",
        )
        self.voter_count = 0

    def __len__(self) -> int:
        return len(self.candidates)

    def record(self, ballot: Sequence[int]) -> None:
        """
        Add one voter's ranking to the tally.

        Every candidate is preferred over every candidate ranked after it,
        not only the next one down.

        Raises:
            InvalidBallotError: If the ballot is not a full ranking; the
                tally is left untouched
        """
        ranks = validate_ballot(ballot, len(self))
        n = len(self)
        increments = [[0] * n for _ in range(n)]
        for p, preferred in enumerate(ranks):
            for other in ranks[p + 1:]:
                increments[preferred][other] = 1
        self.counts += pd.DataFrame(
            increments, index=self.candidates, columns=self.candidates
        )
        self.voter_count += 1

    def preference(self, i: int, j: int) -> int:
        """Number of voters ranking candidate i above candidate j."""
        return int(self.counts.iat[i, j])


# =============================================================================
# Ranked Pairs Algorithm
# =============================================================================

def extract_pairs(tally: PreferenceTally) -> list[Pair]:
    """
    Find every pairwise victory in the tally.

    Pairs are emitted in candidate-index order. Candidates preferred by
    equally many voters in both directions produce no pair.

    Args:
        tally: Completed preference tally

    Returns:
        List of pairs with positive margins
    """
    pairs = []
    n_candidates = len(tally)

    for i in range(n_candidates - 1):
        for j in range(i + 1, n_candidates):
            i_over_j = tally.preference(i, j)
            j_over_i = tally.preference(j, i)

            if i_over_j > j_over_i:
                pairs.append(Pair(i, j, i_over_j - j_over_i))
            elif j_over_i > i_over_j:
                pairs.append(Pair(j, i, j_over_i - i_over_j))

    return pairs


def rank_pairs(pairs: Sequence[Pair]) -> list[Pair]:
    """
    Order pairs by strength of victory, strongest first.

    The sort is stable: pairs with equal margins keep their extraction order.
    """
    return sorted(pairs, key=lambda p: -p.margin)


def would_create_cycle(graph: nx.DiGraph, winner: int, loser: int) -> bool:
    """
    Check if locking winner over loser would create a cycle.

    A cycle would be created if the winner can already be reached from
    the loser through locked edges.

    Args:
        graph: Current locked graph
        winner: Candidate index the new edge starts from
        loser: Candidate index the new edge points to

    Returns:
        True if adding (winner, loser) would create a cycle
    """
    return nx.has_path(graph, loser, winner)


def lock_pairs(
    ranked_pairs: Sequence[Pair],
    n_candidates: int
) -> tuple[nx.DiGraph, list[Pair]]:
    """
    Lock ranked pairs into a graph, skipping any that would close a cycle.

    Pairs are processed once each in the given order; a skipped pair is
    never reconsidered.

    Args:
        ranked_pairs: Pairs, strongest first
        n_candidates: Number of candidates (graph nodes 0..n-1)

    Returns:
        Tuple of (locked_graph, skipped_pairs)
    """
    locked = nx.DiGraph()
    locked.add_nodes_from(range(n_candidates))
    skipped = []

    for pair in ranked_pairs:
        if would_create_cycle(locked, pair.winner, pair.loser):
            skipped.append(pair)
        else:
            locked.add_edge(pair.winner, pair.loser, margin=pair.margin)

    return locked, skipped


def locked_matrix(graph: nx.DiGraph, candidates: Sequence[str]) -> pd.DataFrame:
    """
    Locked graph as a boolean adjacency matrix.

    Entry (i, j) is True when candidate i is locked over candidate j.
    """
    matrix = nx.to_pandas_adjacency(
        graph,
        nodelist=list(range(len(candidates))),
        dtype=bool,
        weight=None,
    )
    matrix.index = list(candidates)
    matrix.columns = list(candidates)
    return matrix


def find_winner(graph: nx.DiGraph, candidates: Sequence[str]) -> str:
    """
    Find the source of the locked graph.

    Candidates are scanned in index order and the first one with no
    locked edge pointing at it wins.

    Args:
        graph: Locked graph over candidate indices
        candidates: Candidate names in index order

    Returns:
        Name of the winning candidate

    Raises:
        NoSourceError: If every candidate has a locked edge into it
    """
    for index, name in enumerate(candidates):
        if graph.in_degree(index) == 0:
            return name

    raise NoSourceError(
        "Every candidate is locked under another; the locked graph has a cycle"
    )


# =============================================================================
# Election Entry Point
# =============================================================================

def run_election(
    candidates: Sequence[str],
    ballots: Sequence[Sequence[int]],
    max_candidates: int = MAX_CANDIDATES,
    verbose: bool = False
) -> ElectionResult:
    """
    Run a complete ranked pairs election.

    Any invalid ballot aborts the whole election.

    Args:
        candidates: Candidate names in index order
        ballots: Ballots of candidate indices, most preferred first
        max_candidates: Largest number of candidates allowed
        verbose: Print progress information

    Returns:
        ElectionResult with the winner and all intermediate data

    Raises:
        CandidateCountError: If the candidate list is unusable
        InvalidBallotError: If any ballot is not a full ranking
        NoSourceError: If the locked graph has no source
    """
    names = validate_candidates(candidates, max_candidates)
    tally = PreferenceTally(names)

    for ballot_no, ballot in enumerate(ballots, start=1):
        try:
            tally.record(ballot)
        except InvalidBallotError as e:
            raise InvalidBallotError(f"Ballot {ballot_no}: {e}") from e

    if verbose:
        print(f"Found {len(names)} candidates: {names}")
        print(f"Recorded {tally.voter_count} ballots")

    pairs = rank_pairs(extract_pairs(tally))

    if verbose:
        print(f"Found {len(pairs)} pairwise victories")

    locked, skipped = lock_pairs(pairs, len(names))

    if verbose:
        for pair in skipped:
            print(
                f"  Skipped {names[pair.winner]} > {names[pair.loser]} "
                f"(margin {pair.margin}): would create a cycle"
            )

    winner = find_winner(locked, names)

    return ElectionResult(
        candidates=names,
        winner=winner,
        winner_index=names.index(winner),
        tally=tally,
        pairs=pairs,
        locked_graph=locked,
        skipped_pairs=skipped,
    )


# =============================================================================
# Output Generation
# =============================================================================

def pairs_frame(result: ElectionResult) -> pd.DataFrame:
    """
    Ranked pairs as a table.

    Columns: Winner, Loser, Margin, Winner Votes, Loser Votes, Locked.
    """
    names = result.candidates
    rows = []
    for pair in result.pairs:
        rows.append({
            'Winner': names[pair.winner],
            'Loser': names[pair.loser],
            'Margin': pair.margin,
            'Winner Votes': result.tally.preference(pair.winner, pair.loser),
            'Loser Votes': result.tally.preference(pair.loser, pair.winner),
            'Locked': result.locked_graph.has_edge(pair.winner, pair.loser),
        })
    return pd.DataFrame(
        rows,
        columns=['Winner', 'Loser', 'Margin', 'Winner Votes', 'Loser Votes', 'Locked']
    )


def create_results_excel(result: ElectionResult, output_path: Path) -> None:
    """
    Create Excel file with election results.

    Sheets:
    - Result: Winner, number of voters and candidates
    - Preferences: Pairwise preference tally
    - Pairs: Ranked pairs and whether each was locked
    - Skipped Pairs: Pairs rejected because they would close a cycle
    - Locked: Locked adjacency matrix

    Args:
        result: ElectionResult object
        output_path: Where to save the Excel file
    """
    with pd.ExcelWriter(output_path) as writer:
        summary = pd.DataFrame([{
            'Winner': result.winner,
            'Voters': result.voter_count,
            'Candidates': len(result.candidates),
        }])
        summary.to_excel(writer, sheet_name='Result', index=False)

        result.tally.counts.to_excel(writer, sheet_name='Preferences')

        pairs_frame(result).to_excel(writer, sheet_name='Pairs', index=False)

        if result.skipped_pairs:
            names = result.candidates
            skipped_df = pd.DataFrame(
                [(names[p.winner], names[p.loser], p.margin) for p in result.skipped_pairs],
                columns=['Winner', 'Loser', 'Margin']
            )
            skipped_df.to_excel(writer, sheet_name='Skipped Pairs', index=False)

        locked_matrix(result.locked_graph, result.candidates).to_excel(
            writer, sheet_name='Locked'
        )


def simplify_graph(graph: nx.DiGraph) -> nx.DiGraph:
    """
    Remove redundant edges from the locked graph for cleaner visualization.

    If A > B > C is locked, the A > C edge adds nothing to the picture.
    Margins are kept on the surviving edges.
    """
    simplified = nx.transitive_reduction(graph)
    simplified.add_nodes_from(graph.nodes())
    for u, v in simplified.edges():
        simplified.edges[u, v]['margin'] = graph.edges[u, v]['margin']
    return simplified


def build_dot(
    result: ElectionResult,
    title: str = "",
    simplify: bool = True
) -> graphviz.Digraph:
    """
    Build a Graphviz drawing of the locked graph.

    The winner is highlighted; edges are labelled with their margins.
    """
    graph = simplify_graph(result.locked_graph) if simplify else result.locked_graph
    names = result.candidates

    dot = graphviz.Digraph(comment=title)
    dot.attr(rankdir='TB', fontname='DejaVu Sans', fontsize='24')
    dot.attr(pad='0.75', margin='0.5,0.75')

    if title:
        dot.attr(label=f'<<BR/><B>{title}</B><BR/><BR/>>', labelloc='t')

    dot.attr('node', shape='box', style='filled', fillcolor='#E8E8E8',
             color='#E8E8E8', fontname='DejaVu Sans', fontsize='11')
    dot.attr('edge', arrowsize='0.5', fontname='DejaVu Sans', fontsize='9')

    for index in graph.nodes():
        if index == result.winner_index:
            dot.node(str(index), names[index], fillcolor='#C8E6C9', color='#2E7D32')
        else:
            dot.node(str(index), names[index])

    for u, v, margin in graph.edges(data='margin'):
        dot.edge(str(u), str(v), label=str(margin))

    return dot


def create_graph(
    result: ElectionResult,
    output_path: Path,
    title: str = ""
) -> bool:
    """
    Render the locked graph to a PDF.

    Requires the Graphviz executables to be installed on the system.

    Args:
        result: ElectionResult object
        output_path: Where to save the PDF
        title: Optional title for the graph

    Returns:
        True if successful, False if Graphviz is not installed
    """
    dot = build_dot(result, title)

    # graphviz adds the extension itself
    output_path = Path(output_path)
    output_stem = output_path.parent / output_path.stem

    try:
        dot.render(str(output_stem), format='pdf', cleanup=True)
    except graphviz.ExecutableNotFound:
        print("Warning: Graphviz executable not found. Please install Graphviz.")
        return False
    return True


# =============================================================================
# Interactive Input
# =============================================================================

def read_voter_count(input_fn: Callable[[str], str] = input) -> int:
    """Prompt until a positive number of voters is entered."""
    while True:
        answer = input_fn("Number of voters: ").strip()
        try:
            voter_count = int(answer)
        except ValueError:
            continue
        if voter_count >= 1:
            return voter_count


def read_ballot(
    candidates: Sequence[str],
    input_fn: Callable[[str], str] = input
) -> list[int]:
    """
    Prompt for one voter's ranking, one candidate name per rank.

    Raises:
        InvalidBallotError: As soon as an unknown or repeated name is entered
    """
    lookup = {name: i for i, name in enumerate(candidates)}
    ballot = []
    for rank in range(1, len(candidates) + 1):
        name = input_fn(f"Rank {rank}: ").strip()
        if name not in lookup:
            raise InvalidBallotError(f"Unknown candidate '{name}'")
        if lookup[name] in ballot:
            raise InvalidBallotError(f"Candidate '{name}' ranked twice")
        ballot.append(lookup[name])
    return validate_ballot(ballot, len(candidates))


# =============================================================================
# Main Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tideman",
        description="Find the winner of a ranked-choice election using the Ranked Pairs method",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    tideman Alice Bob Charlie
    tideman Alice Bob Charlie --ballots ballots.csv
    tideman Alice Bob Charlie --ballots ballots.csv --report results.xlsx --graph locked.pdf
        """
    )

    parser.add_argument(
        "candidates",
        nargs="*",
        metavar="CANDIDATE",
        help="Candidate names"
    )

    parser.add_argument(
        "--ballots", "-b",
        type=Path,
        default=None,
        help="CSV file with one ballot per row (default: prompt for ballots)"
    )

    parser.add_argument(
        "--max-candidates",
        type=int,
        default=MAX_CANDIDATES,
        help=f"Maximum number of candidates (default: {MAX_CANDIDATES})"
    )

    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write an Excel report to this path"
    )

    parser.add_argument(
        "--graph",
        type=Path,
        default=None,
        help="Render the locked graph to this PDF"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print progress information"
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for command-line usage."""
    args = build_parser().parse_args(argv)

    if not args.candidates:
        print("Usage: tideman [candidate ...]")
        return EXIT_USAGE

    try:
        candidates = validate_candidates(args.candidates, args.max_candidates)
    except CandidateCountError as e:
        print(e)
        if len(args.candidates) > args.max_candidates:
            return EXIT_TOO_MANY_CANDIDATES
        return EXIT_USAGE

    try:
        if args.ballots is not None:
            ballots = load_ballots_csv(args.ballots, candidates)
        else:
            ballots = []
            for _ in range(read_voter_count()):
                ballots.append(read_ballot(candidates))
                print()
    except InvalidBallotError as e:
        print("Invalid vote.")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_VOTE
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except EOFError:
        print("Error: unexpected end of input", file=sys.stderr)
        return EXIT_USAGE

    try:
        result = run_election(candidates, ballots, args.max_candidates, args.verbose)
    except InvalidBallotError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID_VOTE
    except NoSourceError as e:
        print(f"Internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR

    if args.report is not None:
        create_results_excel(result, args.report)
        if args.verbose:
            print(f"Saved results to {args.report}")

    if args.graph is not None:
        if create_graph(result, args.graph, "Ranked Pairs Result") and args.verbose:
            print(f"Saved graph to {args.graph}")

    print(result.winner)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
