"""
Models Module
=============

This module contains the rating models used to rate players of multiplayer elimination games. Every model consumes
the normalized finishing positions produced by elimix.normalize and keeps its own, independent rating column.

Included Rating Systems:
- Pairwise Elo: decomposes a game into all of its two player virtual matches and sums the Elo updates.
- Expected Rank: compares each player's expected rank in the whole field to their actual rank, as Codeforces does.
- Whole-History Rating: jointly fits every player's full rating trajectory with a Plackett-Luce likelihood and a
  Wiener process prior, refitted from scratch whenever a game is added.
- OpenSkill adapter: contract for an externally implemented Bayesian Plackett-Luce model.

The two single-game models share an exponentially decaying K-factor and the 400 point logistic scale, and every
model reports integer ratings centered on 1000.
"""
