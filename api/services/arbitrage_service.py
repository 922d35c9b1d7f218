"""
Two-way arbitrage finder.

For a two-outcome market with decimal odds o1 and o2 the book is an
arbitrage when 1/o1 + 1/o2 < 1. Splitting a total stake T as
s1 = T * o2 / (o1 + o2) and s2 = T - s1 pays the same on either outcome.
"""
from dataclasses import dataclass, replace
from typing import Optional
import logging
import os

import requests

logger = logging.getLogger(__name__)

ODDS_API_URL = "https://api.the-odds-api.com/v4/sports/{sport}/odds"

SPORTS = {
    "upcoming": "Upcoming Games",
    "americanfootball_nfl": "NFL",
    "basketball_nba": "NBA",
    "soccer_epl": "Premier League",
    "soccer_uefa_champs_league": "Champions League",
    "icehockey_nhl": "NHL",
    "baseball_mlb": "MLB",
    "tennis_atp": "ATP Tennis",
}


class ArbitrageServiceException(Exception):
    pass


@dataclass(frozen=True)
class Opportunity:
    sport: str
    event: str
    bookmaker1: str
    bookmaker2: str
    odds1: float
    odds2: float
    stake1: float = 0.0
    stake2: float = 0.0
    total_stake: float = 0.0
    profit: float = 0.0
    profit_percentage: float = 0.0


def implied_margin(odds1: float, odds2: float) -> float:
    return 1 / odds1 + 1 / odds2


def is_arbitrage(odds1: float, odds2: float) -> bool:
    return implied_margin(odds1, odds2) < 1


def split_stakes(total_stake: float, odds1: float, odds2: float) -> tuple[float, float]:
    if total_stake <= 0:
        raise ArbitrageServiceException("Total stake must be positive")
    if odds1 <= 1 or odds2 <= 1:
        raise ArbitrageServiceException("Decimal odds must be greater than 1")
    stake1 = total_stake * odds2 / (odds1 + odds2)
    return stake1, total_stake - stake1


def profit(total_stake: float, odds1: float, odds2: float) -> float:
    """Guaranteed return minus stake; negative when the book is not an arbitrage"""
    stake1, stake2 = split_stakes(total_stake, odds1, odds2)
    return min(stake1 * odds1, stake2 * odds2) - total_stake


def profit_percentage(odds1: float, odds2: float) -> float:
    return (1 / implied_margin(odds1, odds2) - 1) * 100


def price(opportunity: Opportunity, total_stake: float) -> Opportunity:
    """Re-stake an opportunity for the given total"""
    stake1, stake2 = split_stakes(total_stake, opportunity.odds1, opportunity.odds2)
    return replace(
        opportunity,
        stake1=round(stake1, 2),
        stake2=round(stake2, 2),
        total_stake=total_stake,
        profit=round(profit(total_stake, opportunity.odds1, opportunity.odds2), 2),
        profit_percentage=round(profit_percentage(opportunity.odds1, opportunity.odds2), 2),
    )


# Board used when no odds feed is configured
SAMPLE_BOARD = [
    Opportunity("NBA", "Lakers vs Warriors", "BetMGM", "DraftKings", 2.10, 2.05),
    Opportunity("NFL", "Chiefs vs Bills", "FanDuel", "Caesars", 2.12, 2.02),
    Opportunity("Premier League", "Manchester City vs Liverpool", "Bet365", "William Hill", 2.25, 1.86),
    Opportunity("NHL", "Rangers vs Bruins", "PointsBet", "BetRivers", 1.95, 1.98),
]


def best_two_way(event: dict) -> Optional[Opportunity]:
    """Best price per outcome across bookmakers for an Odds API h2h event"""
    best = {}
    for bookmaker in event.get("bookmakers", []):
        for market in bookmaker.get("markets", []):
            if market.get("key") != "h2h":
                continue
            outcomes = market.get("outcomes", [])
            if len(outcomes) != 2:
                continue
            for outcome in outcomes:
                name, odds = outcome.get("name"), outcome.get("price")
                if odds and (name not in best or odds > best[name][0]):
                    best[name] = (odds, bookmaker.get("title", bookmaker.get("key", "?")))
    home, away = event.get("home_team"), event.get("away_team")
    if home not in best or away not in best:
        return None
    (odds1, book1), (odds2, book2) = best[home], best[away]
    return Opportunity(
        sport=event.get("sport_title", ""),
        event=f"{home} vs {away}",
        bookmaker1=book1,
        bookmaker2=book2,
        odds1=odds1,
        odds2=odds2,
    )


class ArbitrageService:
    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else os.getenv("ODDS_API_KEY")
        self.session = session or requests.Session()

    def fetch_board(self, sport: str = "upcoming") -> list[Opportunity]:
        if sport not in SPORTS:
            raise ArbitrageServiceException(f"Unknown sport: {sport}")
        if not self.api_key:
            return list(SAMPLE_BOARD)
        try:
            response = self.session.get(
                ODDS_API_URL.format(sport=sport),
                params={"apiKey": self.api_key, "regions": "eu,uk,us", "markets": "h2h", "oddsFormat": "decimal"},
                timeout=10,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Odds feed request failed for {sport}: {e}")
            raise ArbitrageServiceException("Failed to fetch odds data. Please try again later.")
        board = [opp for opp in (best_two_way(event) for event in response.json()) if opp]
        logger.info(f"Fetched {len(board)} two-way markets for {sport}")
        return board

    def find_opportunities(
        self,
        sport: str = "upcoming",
        min_profit: float = 1.0,
        total_stake: float = 1000.0,
        search: str = "",
    ) -> list[Opportunity]:
        needle = (search or "").strip().lower()
        result = []
        for opportunity in self.fetch_board(sport):
            if not is_arbitrage(opportunity.odds1, opportunity.odds2):
                continue
            priced = price(opportunity, total_stake)
            if priced.profit_percentage < min_profit:
                continue
            if needle and needle not in priced.event.lower() and needle not in priced.sport.lower():
                continue
            result.append(priced)
        return sorted(result, key=lambda o: o.profit_percentage, reverse=True)
