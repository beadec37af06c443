import io

import pandas as pd

import tideman


ABC = ['A', 'B', 'C']


def feed(monkeypatch, text):
    monkeypatch.setattr('sys.stdin', io.StringIO(text))


def last_line(out):
    return out.strip().splitlines()[-1]


def test_interactive_election(monkeypatch, capsys):
    feed(monkeypatch, '5\n' + 'A\nB\nC\n' * 3 + 'B\nC\nA\n' * 2)
    assert tideman.main(ABC) == tideman.EXIT_OK
    out = capsys.readouterr().out
    assert 'Number of voters: ' in out
    assert 'Rank 3: ' in out
    assert last_line(out) == 'A'


def test_voter_count_is_asked_again(monkeypatch, capsys):
    feed(monkeypatch, '0\nmany\n-2\n1\nC\nA\nB\n')
    assert tideman.main(ABC) == tideman.EXIT_OK
    out = capsys.readouterr().out
    assert out.count('Number of voters: ') == 4
    assert last_line(out) == 'C'


def test_unknown_name_is_invalid_vote(monkeypatch, capsys):
    feed(monkeypatch, '1\nA\nZed\nC\n')
    assert tideman.main(ABC) == tideman.EXIT_INVALID_VOTE
    captured = capsys.readouterr()
    assert 'Invalid vote.' in captured.out
    assert 'Zed' in captured.err


def test_repeated_name_is_invalid_vote(monkeypatch, capsys):
    feed(monkeypatch, '1\nA\nA\nC\n')
    assert tideman.main(ABC) == tideman.EXIT_INVALID_VOTE
    assert 'Invalid vote.' in capsys.readouterr().out


def test_end_of_input(monkeypatch, capsys):
    feed(monkeypatch, '2\nA\nB\nC\n')
    assert tideman.main(ABC) == tideman.EXIT_USAGE
    assert 'unexpected end of input' in capsys.readouterr().err


def test_no_candidates(capsys):
    assert tideman.main([]) == tideman.EXIT_USAGE
    assert 'Usage: tideman' in capsys.readouterr().out


def test_too_many_candidates(capsys):
    assert tideman.main(list('ABCDEFGHIJ')) == tideman.EXIT_TOO_MANY_CANDIDATES
    assert 'Maximum number of candidates is 9' in capsys.readouterr().out


def test_max_candidates_option(tmp_path, capsys):
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('A,B,C\n')
    assert tideman.main(ABC + ['--max-candidates', '2', '--ballots', str(ballots)]) == (
        tideman.EXIT_TOO_MANY_CANDIDATES
    )
    assert 'Maximum number of candidates is 2' in capsys.readouterr().out


def test_duplicate_candidates(capsys):
    assert tideman.main(['A', 'B', 'A']) == tideman.EXIT_USAGE
    assert 'unique' in capsys.readouterr().out


def test_ballot_file(tmp_path, capsys):
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('A,B,C\nA,B,C\nA,B,C\nB, C, A\nB,C,A\n')
    assert tideman.main(ABC + ['--ballots', str(ballots)]) == tideman.EXIT_OK
    assert capsys.readouterr().out.strip() == 'A'


def test_ballot_file_with_bad_row(tmp_path, capsys):
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('A,B,C\nA,A,C\n')
    assert tideman.main(ABC + ['--ballots', str(ballots)]) == tideman.EXIT_INVALID_VOTE
    assert 'Row 2' in capsys.readouterr().err


def test_ballot_file_with_short_row(tmp_path, capsys):
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('A,B,C\nA,B\n')
    assert tideman.main(ABC + ['--ballots', str(ballots)]) == tideman.EXIT_INVALID_VOTE


def test_missing_ballot_file(tmp_path, capsys):
    missing = tmp_path / 'nope.csv'
    assert tideman.main(ABC + ['--ballots', str(missing)]) == tideman.EXIT_USAGE
    assert 'not found' in capsys.readouterr().err


def test_empty_ballot_file(tmp_path, capsys):
    empty = tmp_path / 'empty.csv'
    empty.write_text('')
    assert tideman.main(ABC + ['--ballots', str(empty)]) == tideman.EXIT_USAGE
    assert 'empty' in capsys.readouterr().err


def test_internal_error_exit_code(tmp_path, monkeypatch, capsys):
    def broken(graph, candidates):
        raise tideman.NoSourceError('broken')

    monkeypatch.setattr(tideman, 'find_winner', broken)
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('A,B,C\n')
    assert tideman.main(ABC + ['--ballots', str(ballots)]) == tideman.EXIT_INTERNAL_ERROR
    assert 'Internal error: broken' in capsys.readouterr().err


def test_verbose_reports_skipped_pairs(tmp_path, capsys):
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('A,B,C\n' * 4 + 'B,C,A\n' * 3 + 'C,A,B\n' * 2)
    assert tideman.main(ABC + ['--ballots', str(ballots), '-v']) == tideman.EXIT_OK
    out = capsys.readouterr().out
    assert 'Recorded 9 ballots' in out
    assert 'Skipped C > A (margin 1)' in out
    assert last_line(out) == 'A'


def test_report_option(tmp_path, capsys):
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('A,B,C\nB,C,A\nB,A,C\n')
    report = tmp_path / 'results.xlsx'
    assert tideman.main(ABC + ['--ballots', str(ballots), '--report', str(report)]) == (
        tideman.EXIT_OK
    )
    assert report.exists()
    sheets = pd.read_excel(report, sheet_name=None)
    assert sheets['Result'].loc[0, 'Winner'] == 'B'


def test_ballot_file_with_missing_value_names(tmp_path, capsys):
    ballots = tmp_path / 'ballots.csv'
    ballots.write_text('NA,None,null\nNA,None,null\nnull,NA,None\n')
    assert tideman.main(['NA', 'None', 'null', '--ballots', str(ballots)]) == tideman.EXIT_OK
    assert capsys.readouterr().out.strip() == 'NA'
