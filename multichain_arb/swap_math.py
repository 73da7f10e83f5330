"""
Uniswap V2 style constant-product math on integers.

Reproduces the router's getAmountOut/getAmountIn bit for bit: the fee is
applied to the input and every division floors, exactly like the on-chain
uint256 arithmetic. Python ints never overflow, so reserves of any width are
safe.

Formula (30 bps fee):
    amountOut = (amountIn * 997 * reserveOut) / (reserveIn * 1000 + amountIn * 997)
"""

from typing import Iterable, List, Sequence, Tuple

FEE_DENOMINATOR = 10_000
DEFAULT_FEE_BPS = 30


def _require_int(**values) -> None:
    for name, value in values.items():
        # bool is an int subclass but never a valid amount
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"{name} must be int, got {type(value).__name__}")


def amount_out(
    amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = DEFAULT_FEE_BPS
) -> int:
    """
    Output amount for a single V2 swap.

    Args:
        amount_in: Input amount in the token's smallest unit
        reserve_in: Pool reserve of the input token
        reserve_out: Pool reserve of the output token
        fee_bps: Pool fee in basis points (30 = 0.3%)

    Returns:
        Floored output amount; 0 for a zero input or an empty pool side

    Raises:
        TypeError: If any amount is not an int
    """
    _require_int(amount_in=amount_in, reserve_in=reserve_in, reserve_out=reserve_out)
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0

    amount_in_with_fee = amount_in * (FEE_DENOMINATOR - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def amount_in(
    amount_out_: int, reserve_in: int, reserve_out: int, fee_bps: int = DEFAULT_FEE_BPS
) -> int:
    """
    Minimum input that yields at least ``amount_out_`` (getAmountIn, rounded up).

    Returns 0 when the request is degenerate or would drain the output reserve.
    """
    _require_int(amount_out=amount_out_, reserve_in=reserve_in, reserve_out=reserve_out)
    if amount_out_ <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    if amount_out_ >= reserve_out:
        return 0

    numerator = reserve_in * amount_out_ * FEE_DENOMINATOR
    denominator = (reserve_out - amount_out_) * (FEE_DENOMINATOR - fee_bps)
    return numerator // denominator + 1


def path_amounts(
    amount_in_: int,
    hops: Iterable[Tuple[int, int]],
    fee_bps: int = DEFAULT_FEE_BPS,
) -> List[int]:
    """
    Fold ``amount_out`` across ordered (reserve_in, reserve_out) hops.

    Returns:
        [amount_in, out_hop1, out_hop2, ...]
    """
    amounts = [amount_in_]
    current = amount_in_
    for reserve_in, reserve_out in hops:
        current = amount_out(current, reserve_in, reserve_out, fee_bps)
        amounts.append(current)
    return amounts


def cyclic_profit(
    amount_in_: int,
    hops: Sequence[Tuple[int, int]],
    fee_bps: int = DEFAULT_FEE_BPS,
) -> int:
    """
    Signed profit of pushing ``amount_in_`` through every hop in order.

    Positive means the path returns more of the starting asset than it took.
    """
    return path_amounts(amount_in_, hops, fee_bps)[-1] - amount_in_
