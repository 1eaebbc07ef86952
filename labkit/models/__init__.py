"""Models for checking the linearizability of operation histories."""