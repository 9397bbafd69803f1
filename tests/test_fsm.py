from loopback_hwmgr.adaptor.fsm import PoolRequestAction, determine_action
from loopback_hwmgr.core.types import Condition, ConditionStatus, PoolRequest, PoolRequestStatus


def _request(conditions: list[Condition], generation: int = 1, observed: int = 1) -> PoolRequest:
    return PoolRequest(
        name="pool1",
        cloud_id="cloud1",
        generation=generation,
        status=PoolRequestStatus(conditions=conditions, observed_generation=observed),
    )


def _provisioned(status: ConditionStatus) -> Condition:
    return Condition(type="Provisioned", status=status, reason="InProgress")


def test_no_conditions_is_create():
    assert determine_action(_request([])) == PoolRequestAction.create


def test_provisioned_false_or_unknown_is_processing():
    assert determine_action(_request([_provisioned(ConditionStatus.false)])) == PoolRequestAction.processing
    assert determine_action(_request([_provisioned(ConditionStatus.unknown)])) == PoolRequestAction.processing


def test_provisioned_true_with_matching_generation_is_noop():
    req = _request([_provisioned(ConditionStatus.true)], generation=3, observed=3)
    assert determine_action(req) == PoolRequestAction.noop


def test_provisioned_true_with_new_generation_is_spec_changed():
    req = _request([_provisioned(ConditionStatus.true)], generation=4, observed=3)
    assert determine_action(req) == PoolRequestAction.spec_changed


def test_conditions_without_provisioned_is_noop():
    req = _request([Condition(type="Validated", status=ConditionStatus.true, reason="Done")])
    assert determine_action(req) == PoolRequestAction.noop


def test_classification_is_deterministic():
    req = _request([_provisioned(ConditionStatus.true)], generation=2, observed=1)
    actions = {determine_action(req) for _ in range(10)}
    assert actions == {PoolRequestAction.spec_changed}
