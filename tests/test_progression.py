from tilecraft.items import can_afford, choose_cost, meets_tier, next_tier, pay
from tilecraft.progression import default_skills, grant_xp, harvest_yield, xp_to_next


def test_xp_curve():
    assert xp_to_next(1) == 100
    assert xp_to_next(4) == 400


def test_grant_xp_rolls_over_several_levels():
    skill = {'level': 1, 'xp': 0}
    assert grant_xp(skill, 350) == 2
    assert skill == {'level': 3, 'xp': 50}


def test_default_skills_are_independent_copies():
    a, b = default_skills(), default_skills()
    a['mining']['xp'] = 5
    assert b['mining']['xp'] == 0


def test_harvest_yield_bonus():
    assert harvest_yield('stone', 1) == 1
    assert harvest_yield('stone', 5) == 2
    assert harvest_yield('gold', 20) == 2


def test_tool_tiers_are_ordered():
    assert meets_tier('iron', 'stone')
    assert not meets_tier('wood', 'stone')
    assert not meets_tier('plastic', 'wood')
    assert next_tier('wood')['id'] == 'stone'
    assert next_tier('diamond') is None


def test_choose_cost_and_pay():
    inv = {'wood': 1, 'stone': 6}
    cost = choose_cost('wall', inv)
    assert cost['material'] == 'stone'
    pay(inv, cost['resources'])
    assert inv == {'wood': 1, 'stone': 2}
    assert not can_afford(inv, {'stone': 4})
    assert choose_cost('wall', inv) is None
