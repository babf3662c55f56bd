# Overview: Pytest coverage for the bootstrap CLI commands.

from erpmini.models import Account, Branch


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['system', 'init', '--branch', 'Head Office', '--branch-code', 'HQ'])
    assert result.exit_code == 0, result.output
    assert 'Created branch: Head Office' in result.output

    result = runner.invoke(args=['system', 'init', '--branch', 'Head Office', '--branch-code', 'HQ'])
    assert result.exit_code == 0, result.output
    assert 'Using existing branch' in result.output

    branch = db_session.query(Branch).filter_by(name='Head Office').one()
    types = sorted(a.type for a in db_session.query(Account).filter_by(branch_id=branch.id))
    assert types == ['bank', 'cash']


def test_branch_and_account_commands(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['branches', 'create', '--name', 'Uptown', '--code', 'UPT'])
    assert result.exit_code == 0, result.output

    result = runner.invoke(args=['branches', 'create', '--name', 'Uptown'])
    assert result.exit_code != 0
    assert 'already exists' in result.output

    branch = db_session.query(Branch).filter_by(code='UPT').one()
    result = runner.invoke(args=[
        'accounts', 'create', '--branch-id', str(branch.id),
        '--name', 'Petty Cash', '--type', 'cash', '--opening-balance', '500',
    ])
    assert result.exit_code == 0, result.output

    result = runner.invoke(args=['accounts', 'list', '--branch-id', str(branch.id)])
    assert 'Petty Cash' in result.output
    assert '500.00' in result.output
