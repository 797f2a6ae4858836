"""
test_demo.py - The tutorial runs end to end
"""

import demo


def test_tutorial_quick_mode(monkeypatch, capsys):
    monkeypatch.setattr(demo, "QUICK_MODE", True)
    demo.main()
    out = capsys.readouterr().out
    assert "TUTORIAL COMPLETE" in out
    assert "Market invariants valid: True" in out
    assert "bob refused: EligibilityError" in out
