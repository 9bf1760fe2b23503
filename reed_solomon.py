"""Galois Field GF(2^8) and Reed-Solomon error correction with erasure support.

Polynomials are lists of coefficients, highest degree first.
"""


class ReedSolomonError(ValueError):
    """The codeword could not be corrected."""


class GF:
    """Galois Field GF(2^8) with the QR primitive polynomial 0x11D."""
    def __init__(self, prim=0x11D):
        self.exp, self.log = [0]*512, [0]*256
        x = 1
        for i in range(255):
            self.exp[i], self.log[x] = x, i
            x <<= 1
            if x & 0x100:
                x ^= prim
        for i in range(255, 512):
            self.exp[i] = self.exp[i - 255]

    def mul(self, a, b):
        return 0 if a == 0 or b == 0 else self.exp[self.log[a] + self.log[b]]

    def div(self, a, b):
        if b == 0:
            raise ZeroDivisionError("GF division by zero")
        return 0 if a == 0 else self.exp[(self.log[a] - self.log[b]) % 255]

    def inv(self, a):
        return self.exp[255 - self.log[a]]

    def pow(self, a, n):
        return self.exp[(self.log[a] * n) % 255]

    def poly_scale(self, p, x):
        return [self.mul(c, x) for c in p]

    def poly_add(self, p, q):
        r = [0] * max(len(p), len(q))
        for i, c in enumerate(p):
            r[i + len(r) - len(p)] = c
        for i, c in enumerate(q):
            r[i + len(r) - len(q)] ^= c
        return r

    def poly_mul(self, p, q):
        r = [0] * (len(p) + len(q) - 1)
        for j, cq in enumerate(q):
            for i, cp in enumerate(p):
                r[i + j] ^= self.mul(cp, cq)
        return r

    def poly_eval(self, p, x):
        r = p[0]
        for c in p[1:]:
            r = self.mul(r, x) ^ c
        return r


_GF = GF()


class ReedSolomon:
    """Reed-Solomon decoder for nsym check symbols, generator roots alpha^0..alpha^(nsym-1)."""
    def __init__(self, nsym):
        self.nsym, self.gf = nsym, _GF

    def syndromes(self, msg):
        """Syndromes with a leading 0, the shift the locator search expects."""
        return [0] + [self.gf.poly_eval(msg, self.gf.pow(2, i)) for i in range(self.nsym)]

    def _forney_syndromes(self, synd, erasure_pos, n):
        """Fold known erasure locations out of the syndromes."""
        fsynd = list(synd[1:])
        for pos in erasure_pos:
            x = self.gf.pow(2, n - 1 - pos)
            for j in range(len(fsynd) - 1):
                fsynd[j] = self.gf.mul(fsynd[j], x) ^ fsynd[j + 1]
        return fsynd

    def _error_locator(self, synd, erase_count=0):
        """Berlekamp-Massey over the (Forney) syndromes."""
        err_loc, old_loc = [1], [1]
        # only the first nsym - erase_count Forney syndromes are valid
        for i in range(self.nsym - erase_count):
            delta = synd[i]
            for j in range(1, len(err_loc)):
                delta ^= self.gf.mul(err_loc[-(j + 1)], synd[i - j])
            old_loc = old_loc + [0]
            if delta != 0:
                if len(old_loc) > len(err_loc):
                    new_loc = self.gf.poly_scale(old_loc, delta)
                    old_loc = self.gf.poly_scale(err_loc, self.gf.inv(delta))
                    err_loc = new_loc
                err_loc = self.gf.poly_add(err_loc, self.gf.poly_scale(old_loc, delta))

        while len(err_loc) > 1 and err_loc[0] == 0:
            del err_loc[0]
        errs = len(err_loc) - 1
        if errs * 2 + erase_count > self.nsym:
            raise ReedSolomonError("Too many errors to correct")
        return err_loc

    def _find_errors(self, err_loc, n):
        """Chien search: positions where the reversed locator has a root."""
        errs = len(err_loc) - 1
        err_pos = [n - 1 - i for i in range(n) if self.gf.poly_eval(err_loc, self.gf.pow(2, i)) == 0]
        if len(err_pos) != errs:
            raise ReedSolomonError("Cannot locate errors")
        return err_pos

    def _correct(self, msg, synd, err_pos):
        """Forney algorithm: compute and apply error magnitudes."""
        coef_pos = [len(msg) - 1 - p for p in err_pos]
        err_loc = [1]
        for c in coef_pos:
            err_loc = self.gf.poly_mul(err_loc, [self.gf.pow(2, c), 1])
        err_eval = self.gf.poly_mul(synd[::-1], err_loc)[-len(err_loc):][::-1]

        X = [self.gf.pow(2, c) for c in coef_pos]
        E = [0] * len(msg)
        for i, Xi in enumerate(X):
            Xi_inv = self.gf.inv(Xi)
            loc_prime = 1
            for j, Xj in enumerate(X):
                if j != i:
                    loc_prime = self.gf.mul(loc_prime, 1 ^ self.gf.mul(Xi_inv, Xj))
            if loc_prime == 0:
                raise ReedSolomonError("Could not find error magnitude")
            y = self.gf.mul(Xi, self.gf.poly_eval(err_eval[::-1], Xi_inv))
            E[err_pos[i]] = self.gf.div(y, loc_prime)
        return self.gf.poly_add(msg, E)

    def decode(self, msg, erasure_pos=None):
        """Decode with optional erasure positions; returns the data part.

        With erasures: can correct 2*errors + erasures <= nsym
        Without erasures: can correct errors <= nsym/2
        """
        msg = list(msg)
        if len(msg) > 255:
            raise ReedSolomonError(f"Message too long ({len(msg)} > 255)")
        erasure_pos = list(erasure_pos or [])
        if len(erasure_pos) > self.nsym:
            raise ReedSolomonError("Too many erasures")

        synd = self.syndromes(msg)
        if max(synd) == 0:
            return msg[:-self.nsym]

        fsynd = self._forney_syndromes(synd, erasure_pos, len(msg))
        err_loc = self._error_locator(fsynd, erase_count=len(erasure_pos))
        err_pos = self._find_errors(err_loc[::-1], len(msg))

        corrected = self._correct(msg, synd, erasure_pos + err_pos)
        if max(self.syndromes(corrected)) != 0:
            raise ReedSolomonError("Correction failed")
        return corrected[:-self.nsym]
